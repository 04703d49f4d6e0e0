import pytest

from throw_engine.common.config import load_config
from fakes import FakeEncoder


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def camera_config(config):
    camera = dict(config['camera'])
    camera['rotate_portrait'] = False
    return camera


@pytest.fixture
def small_profile(config):
    """Recording profile small enough for the real encoder to be quick."""
    profile = dict(config['recording'])
    profile.update(width=96, height=160, transcode_h264=False, tick_interval=0.01)
    return profile


@pytest.fixture(autouse=True)
def reset_fake_encoders():
    FakeEncoder.instances.clear()
    yield
    FakeEncoder.instances.clear()
