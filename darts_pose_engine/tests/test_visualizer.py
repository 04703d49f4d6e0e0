import numpy as np

from throw_engine.common.enums import JointName
from throw_engine.visualization.visualizer import SKELETON_CONNECTIONS, Visualizer, format_elapsed

from fakes import make_frame, pose_with_angle


def test_eighteen_connections_over_tracked_joints():
    assert len(SKELETON_CONNECTIONS) == 18
    assert len(set(SKELETON_CONNECTIONS)) == 18
    assert all(isinstance(j, JointName) for pair in SKELETON_CONNECTIONS for j in pair)


def test_render_leaves_input_untouched():
    frame = make_frame(320, 240)
    output = Visualizer({}).render(frame, pose_with_angle(100.0), True, {'throws': 2, 'recording': True})
    assert output.shape == frame.shape
    assert not frame.any()
    assert output.any()


def test_throwing_arm_is_drawn_in_red():
    frame = make_frame(320, 240)
    output = Visualizer({'draw_hud': False}).render(frame, pose_with_angle(90.0), True)
    # Midpoint of the right shoulder-elbow segment.
    b, g, r = (int(c) for c in output[96, 160])
    assert r > 200 and g < 100 and b < 100


def test_no_pose_and_no_hud_is_a_plain_copy():
    frame = make_frame(64, 48, 7)
    output = Visualizer({}).render(frame, None)
    assert np.array_equal(output, frame)
    assert output is not frame


def test_format_elapsed():
    assert format_elapsed(0) == "0:00"
    assert format_elapsed(75.9) == "1:15"
