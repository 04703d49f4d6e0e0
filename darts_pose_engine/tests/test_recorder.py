import threading
import time

import cv2
import numpy as np
import pytest

from throw_engine.common.enums import RecorderState
from throw_engine.common.errors import EncoderNotReady, InvalidOutputPath, WritingFailed
from throw_engine.recording.recorder import Recorder

from fakes import FakeEncoder, make_frame, make_metadata, wait_for


def fake_encoder(**kwargs):
    return lambda path, profile: FakeEncoder(path, profile, **kwargs)


class Callbacks:
    def __init__(self, recorder):
        self.durations, self.finished, self.failed = [], [], []
        recorder.on_duration_update = self.durations.append
        recorder.on_recording_finished = self.finished.append
        recorder.on_recording_failed = self.failed.append


def count_frames(path):
    cap = cv2.VideoCapture(str(path))
    count = 0
    while cap.read()[0]:
        count += 1
    cap.release()
    return count


def test_end_to_end_recording(tmp_path, small_profile):
    recorder = Recorder(small_profile, tmp_path)
    calls = Callbacks(recorder)
    frame = make_frame(96, 160, 120)
    timestamps = 5000.0 + np.linspace(0.0, 10.0, 300)

    path = recorder.arm()
    assert recorder.state == RecorderState.ARMED
    assert path.parent == tmp_path
    assert path.name.startswith("session_") and path.suffix == ".mp4"

    for i, ts in enumerate(timestamps, start=1):
        assert wait_for(lambda: recorder.is_ready_for_more_data, timeout=5)
        assert recorder.submit_frame(frame, make_metadata(i, ts, (96, 160)))
    assert recorder.duration == pytest.approx(10.0)

    assert recorder.disarm() is True
    assert recorder.wait_idle(timeout=30)

    assert calls.failed == []
    assert calls.finished == [path]
    assert path.exists() and path.stat().st_size > 0
    assert recorder.frames_accepted == 300
    assert recorder.frames_dropped == 0
    assert calls.durations == sorted(calls.durations)
    assert calls.durations[-1] == pytest.approx(10.0)
    assert recorder.state == RecorderState.IDLE
    assert count_frames(path) == 300
    recorder.close()


def test_frames_ignored_while_idle(tmp_path):
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder())
    assert recorder.submit_frame(make_frame(), make_metadata(1)) is False
    assert recorder.frames_accepted == 0
    assert FakeEncoder.instances == []
    recorder.close()


def test_frames_ignored_while_finalizing(tmp_path):
    gate = threading.Event()
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder(gate=gate))
    calls = Callbacks(recorder)
    try:
        recorder.arm()
        for i in range(1, 6):
            recorder.submit_frame(make_frame(), make_metadata(i))
        encoder = FakeEncoder.instances[0]

        started = time.monotonic()
        assert recorder.disarm() is True
        assert time.monotonic() - started < 1.0
        assert recorder.state == RecorderState.FINALIZING

        assert recorder.submit_frame(make_frame(), make_metadata(6)) is False
        assert len(encoder.frames) == 5
        with pytest.raises(EncoderNotReady):
            recorder.arm()
    finally:
        gate.set()
    assert recorder.wait_idle(timeout=5)
    assert calls.finished == [encoder.output_path]
    assert recorder.state == RecorderState.IDLE
    recorder.close()


def test_timeline_starts_at_first_accepted_frame(tmp_path):
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder())
    recorder.arm()
    recorder.submit_frame(make_frame(), make_metadata(1, 812.5))
    recorder.submit_frame(make_frame(), make_metadata(2, 813.0))
    recorder.submit_frame(make_frame(), make_metadata(3, 814.25))
    assert FakeEncoder.instances[0].start_time == 812.5
    assert recorder.duration == pytest.approx(1.75)
    recorder.close()


def test_back_pressure_drops_without_blocking(tmp_path):
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder(ready=False))
    recorder.arm()
    encoder = FakeEncoder.instances[0]
    for i in range(1, 11):
        assert recorder.submit_frame(make_frame(), make_metadata(i)) is False
    assert recorder.frames_dropped == 10
    assert encoder.frames == []
    assert encoder.start_time is None

    encoder.ready = True
    assert recorder.submit_frame(make_frame(), make_metadata(11, 2.0)) is True
    assert encoder.start_time == 2.0
    recorder.close()


def test_real_encoder_reports_back_pressure(tmp_path, small_profile):
    release = threading.Event()

    class SlowWriter:
        def __init__(self, *args):
            pass

        def isOpened(self):
            return True

        def write(self, frame):
            release.wait(5)

        def release(self):
            pass

    from throw_engine.recording.encoder import VideoEncoder
    profile = dict(small_profile, max_pending_frames=2)
    recorder = Recorder(profile, tmp_path,
                        encoder_factory=lambda path, p: VideoEncoder(path, p, writer_factory=SlowWriter))
    recorder.arm()
    results = [recorder.submit_frame(make_frame(96, 160), make_metadata(i)) for i in range(1, 11)]
    assert results[0] is True
    assert False in results
    assert recorder.frames_dropped > 0
    release.set()
    recorder.close()


def test_encoder_failure_reported(tmp_path):
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder(fail=True))
    calls = Callbacks(recorder)
    recorder.arm()
    recorder.submit_frame(make_frame(), make_metadata(1))
    recorder.disarm()
    assert recorder.wait_idle(timeout=5)
    assert calls.finished == []
    assert len(calls.failed) == 1
    assert isinstance(calls.failed[0], WritingFailed)
    assert "Failed to save recording" in str(calls.failed[0])
    assert FakeEncoder.instances[0].discarded
    assert recorder.state == RecorderState.IDLE
    recorder.close()


def test_empty_recording_fails_with_real_encoder(tmp_path, small_profile):
    recorder = Recorder(small_profile, tmp_path)
    calls = Callbacks(recorder)
    path = recorder.arm()
    recorder.disarm()
    assert recorder.wait_idle(timeout=10)
    assert calls.finished == []
    assert isinstance(calls.failed[0], WritingFailed)
    assert not path.exists()
    recorder.close()


def test_uncreatable_destination(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    recorder = Recorder({}, blocker / "videos", encoder_factory=fake_encoder())
    with pytest.raises(InvalidOutputPath):
        recorder.arm()
    assert recorder.state == RecorderState.IDLE
    recorder.close()


def test_encoder_init_failure(tmp_path):
    def broken(path, profile):
        raise RuntimeError("no codec")

    recorder = Recorder({}, tmp_path, encoder_factory=broken)
    with pytest.raises(EncoderNotReady):
        recorder.arm()
    assert recorder.state == RecorderState.IDLE
    recorder.close()


def test_disarm_when_idle_is_noop(tmp_path):
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder())
    assert recorder.disarm() is False
    recorder.close()


def test_arm_twice_keeps_recording(tmp_path):
    recorder = Recorder({}, tmp_path, encoder_factory=fake_encoder())
    first = recorder.arm()
    assert recorder.arm() == first
    assert len(FakeEncoder.instances) == 1
    recorder.close()


def test_duration_ticker_runs_only_while_armed(tmp_path):
    recorder = Recorder({'tick_interval': 0.01}, tmp_path, encoder_factory=fake_encoder())
    calls = Callbacks(recorder)
    recorder.arm()
    recorder.submit_frame(make_frame(), make_metadata(1, 0.0))
    recorder.submit_frame(make_frame(), make_metadata(2, 0.5))
    assert wait_for(lambda: len(calls.durations) >= 3)
    recorder.disarm()
    assert recorder.wait_idle(timeout=5)
    count = len(calls.durations)
    time.sleep(0.05)
    assert len(calls.durations) == count
    assert calls.durations[-1] == pytest.approx(0.5)
    recorder.close()
