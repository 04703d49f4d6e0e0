import pytest

from throw_engine.common.enums import AngleQuality
from throw_engine.processing.angle_sampler import AngleSampler, angle_quality

from fakes import pose_with_angle


def test_average_of_armed_samples():
    sampler = AngleSampler()
    for angle in (80.0, 90.0, 100.0):
        sampler.add_pose(pose_with_angle(angle), armed=True)
    assert sampler.count == 3
    assert sampler.average() == pytest.approx(90.0)


def test_no_samples_means_no_average():
    assert AngleSampler().average() is None


def test_unarmed_poses_only_update_latest_angle():
    sampler = AngleSampler()
    assert sampler.add_pose(pose_with_angle(120.0), armed=False) == pytest.approx(120.0)
    assert sampler.latest_angle == pytest.approx(120.0)
    assert sampler.count == 0
    assert sampler.average() is None


def test_missing_arm_joints_are_not_sampled():
    sampler = AngleSampler(is_right_handed=False)
    assert sampler.add_pose(pose_with_angle(95.0, right=True), armed=True) is None
    assert sampler.add_pose(None, armed=True) is None
    assert sampler.latest_angle is None
    assert sampler.count == 0


def test_reset_clears_samples():
    sampler = AngleSampler()
    sampler.add_sample(90.0)
    sampler.reset()
    assert sampler.average() is None


@pytest.mark.parametrize("angle, quality", [
    (85, AngleQuality.GOOD),
    (100, AngleQuality.GOOD),
    (115, AngleQuality.GOOD),
    (70, AngleQuality.FAIR),
    (130, AngleQuality.FAIR),
    (69.9, AngleQuality.POOR),
    (150, AngleQuality.POOR),
])
def test_angle_quality_bands(angle, quality):
    assert angle_quality(angle) == quality
