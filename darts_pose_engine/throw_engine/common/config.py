# darts_pose_engine/throw_engine/common/config.py
import copy
import os
import yaml
from typing import Optional
from .errors import ConfigError

DEFAULT_CONFIG = {
    'camera': {
        'positions': {'user_facing': 0, 'world_facing': 1},
        'initial_position': 'user_facing',
        'resolution': [1280, 720],
        'target_fps': 30,
        'buffer_size': 5,
        'rotate_portrait': True,
    },
    'pose': {
        'model_complexity': 1,
        'min_detection_confidence': 0.5,
        'min_tracking_confidence': 0.5,
        'joint_confidence_threshold': 0.3,
        'live_every_nth_frame': 4,
    },
    'recording': {
        'width': 720,
        'height': 1280,
        'fps': 30,
        'fourcc': 'mp4v',
        'bitrate': 2_500_000,
        'transcode_h264': True,
        'max_pending_frames': 8,
        'tick_interval': 0.1,
        'thumbnail_size': 300,
        'thumbnail_quality': 70,
    },
    'playback': {
        'clock_hz': 30,
        'sample_every_nth_tick': 3,
        'skip_seconds': 10,
    },
    'storage': {
        'root': '~/.darts_pose_engine',
    },
    'visualization': {
        'draw_landmarks': True,
        'draw_hud': True,
        'right_handed': True,
    },
    'logging': {
        'level': 'INFO',
    },
}

def load_config(path: Optional[str] = None) -> dict:
    """
    Loads the YAML configuration and merges it over DEFAULT_CONFIG, one section at a time.
    With no path, the defaults are returned. The storage root is always user-expanded.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is not None:
        _merge_file(config, path)
    config['storage']['root'] = os.path.expanduser(str(config['storage']['root']))
    return config

def _merge_file(config: dict, path: str) -> None:
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file '{path}' not found.") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file '{path}'. {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping.")

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
