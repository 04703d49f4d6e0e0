import threading

import pytest

from throw_engine.common.dispatch import InlineDispatcher, QueueDispatcher
from throw_engine.common.errors import InferenceError
from throw_engine.processing.pose_estimator import PoseEstimator

from fakes import FakeProcessor, make_frame, make_metadata, wait_for


@pytest.fixture
def frame():
    return make_frame()


def idle(estimator):
    return wait_for(lambda: not estimator.is_processing)


def test_every_nth_frame_is_inferred(frame):
    processor = FakeProcessor()
    estimator = PoseEstimator(processor, every_nth_frame=4, dispatcher=InlineDispatcher())
    try:
        for i in range(1, 13):
            estimator.submit_frame(frame, make_metadata(i))
            assert idle(estimator)
        assert processor.calls == [4, 8, 12]
        assert estimator.stats["dropped_throttle"] == 9
    finally:
        estimator.close()


def test_frames_dropped_while_inference_outstanding(frame):
    gate = threading.Event()
    processor = FakeProcessor(gate=gate)
    estimator = PoseEstimator(processor, every_nth_frame=1)
    try:
        assert estimator.submit_frame(frame, make_metadata(1)) is True
        for i in range(2, 11):
            assert estimator.submit_frame(frame, make_metadata(i)) is False
        assert estimator.stats["dropped_busy"] == 9

        gate.set()
        assert idle(estimator)
        assert processor.calls == [1]
        assert estimator.last_result.frame_id == 1

        assert estimator.submit_frame(frame, make_metadata(11)) is True
        assert idle(estimator)
        assert estimator.last_result.frame_id == 11
    finally:
        gate.set()
        estimator.close()


def test_at_most_one_inference_in_flight(frame):
    processor = FakeProcessor(delay=0.002)
    estimator = PoseEstimator(processor, every_nth_frame=1)

    def producer(offset):
        for i in range(150):
            estimator.submit_frame(frame, make_metadata(offset + i))

    threads = [threading.Thread(target=producer, args=(k * 1000,)) for k in range(3)]
    try:
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert idle(estimator)
        assert processor.max_active == 1
        assert len(processor.calls) == estimator.stats["inferences"]
        assert estimator.stats["dropped_busy"] > 0
        # The published result comes from the last accepted frame.
        assert estimator.last_result.frame_id == processor.calls[-1]
    finally:
        estimator.close()


def test_result_published_to_listeners(frame):
    estimator = PoseEstimator(FakeProcessor(angles=[101.0]), every_nth_frame=1)
    received = []
    estimator.add_pose_listener(received.append)
    try:
        estimator.submit_frame(frame, make_metadata(1))
        assert wait_for(lambda: received)
        assert received[0].active_arm_angle(True) == pytest.approx(101.0)
        assert estimator.current_pose is received[0]
    finally:
        estimator.close()


def test_no_body_publishes_none(frame):
    estimator = PoseEstimator(FakeProcessor(no_body=True), every_nth_frame=1)
    received = []
    estimator.add_pose_listener(received.append)
    try:
        estimator.submit_frame(frame, make_metadata(1))
        assert wait_for(lambda: received)
        assert received == [None]
        assert estimator.current_pose is None
    finally:
        estimator.close()


def test_failure_reported_and_pipeline_continues(frame):
    processor = FakeProcessor(fail_on={1})
    estimator = PoseEstimator(processor, every_nth_frame=1)
    failures, poses = [], []
    estimator.add_failure_listener(failures.append)
    estimator.add_pose_listener(poses.append)
    try:
        estimator.submit_frame(frame, make_metadata(1))
        assert wait_for(lambda: failures)
        assert idle(estimator)
        assert isinstance(failures[0], InferenceError)
        assert poses == [None]
        assert estimator.stats["failures"] == 1

        assert estimator.submit_frame(frame, make_metadata(2)) is True
        assert wait_for(lambda: len(poses) == 2)
        assert poses[-1] is not None
        assert processor.calls == [1, 2]
    finally:
        estimator.close()


def test_unexpected_errors_are_wrapped(frame):
    class Broken:
        def process_frame(self, frame, metadata):
            raise ValueError("bad tensor")

    estimator = PoseEstimator(Broken(), every_nth_frame=1)
    failures = []
    estimator.add_failure_listener(failures.append)
    try:
        estimator.submit_frame(frame, make_metadata(1))
        assert wait_for(lambda: failures)
        assert isinstance(failures[0], InferenceError)
        assert "bad tensor" in str(failures[0])
    finally:
        estimator.close()


def test_queue_dispatcher_delivers_on_draining_thread(frame):
    dispatcher = QueueDispatcher()
    estimator = PoseEstimator(FakeProcessor(), every_nth_frame=1, dispatcher=dispatcher)
    delivered_on = []
    estimator.add_pose_listener(lambda pose: delivered_on.append(threading.get_ident()))
    try:
        assert estimator.submit_frame(frame, make_metadata(1))
        assert wait_for(lambda: dispatcher.pending() == 1)
        # Still in flight until the result has been delivered.
        assert estimator.is_processing
        assert estimator.submit_frame(frame, make_metadata(2)) is False

        assert dispatcher.drain() == 1
        assert delivered_on == [threading.get_ident()]
        assert not estimator.is_processing
        assert estimator.submit_frame(frame, make_metadata(3)) is True
    finally:
        estimator.close()
        dispatcher.drain()


def test_closed_estimator_rejects_frames(frame):
    estimator = PoseEstimator(FakeProcessor(), every_nth_frame=1)
    estimator.close()
    assert estimator.submit_frame(frame, make_metadata(1)) is False
