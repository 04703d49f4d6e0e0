# darts_pose_engine/main.py
import os
import cv2
import time
import logging
import argparse

from throw_engine.camera.camera_manager import CameraManager
from throw_engine.common.config import load_config
from throw_engine.common.dispatch import QueueDispatcher
from throw_engine.common.errors import ThrowEngineError
from throw_engine.common.logging_setup import configure_logging
from throw_engine.playback.review import PlaybackReview
from throw_engine.processing.pose_estimator import PoseEstimator
from throw_engine.processing.pose_processor import PoseProcessor
from throw_engine.recording.recorder import Recorder
from throw_engine.session.tracker import LiveTrackingSession
from throw_engine.storage.session_store import SessionStore
from throw_engine.visualization.visualizer import Visualizer

logger = logging.getLogger("darts_pose_engine")

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.yaml')

def run_live(config: dict):
    """
    The live practice loop. The window loop is the only consumer of published
    results: it drains the dispatcher, draws, and handles keys.
    """
    dispatcher = QueueDispatcher()
    store = SessionStore(config['storage']['root'])
    processor = PoseProcessor(config['pose'])
    camera = CameraManager(config['camera'])
    estimator = PoseEstimator(processor, config['pose']['live_every_nth_frame'], dispatcher, name="live")
    recorder = Recorder(config['recording'], store.root, dispatcher)
    tracker = LiveTrackingSession(camera, estimator, recorder, store, dispatcher, config['recording'],
                                  is_right_handed=config['visualization'].get('right_handed', True))
    tracker.on_session_saved = lambda s: logger.info("Session saved: %s (%s, %d throws)",
                                                     s.title, s.formatted_duration, s.throw_count)
    tracker.on_recording_failed = lambda e: logger.error("Recording lost: %s", e)
    visualizer = Visualizer(config['visualization'])

    try:
        tracker.start().result()
        if not camera.camera_available:
            logger.warning("No camera available; live view will stay empty.")
        while True:
            dispatcher.drain()
            frame, _ = camera.get_frame()
            if frame is not None:
                hud = {
                    'throws': tracker.throw_count,
                    'camera': camera.position.value,
                    'recording': tracker.is_recording,
                    'elapsed': tracker.elapsed,
                }
                output_frame = visualizer.render(frame, tracker.current_pose, tracker.is_right_handed, hud)
                cv2.imshow('Darts Pose Engine', output_frame)
            else:
                time.sleep(0.01)

            key = cv2.waitKey(1) & 0xFF
            if key == ord('q'):
                logger.info("Shutdown signal received.")
                break
            elif key == ord('r'):
                tracker.toggle_recording()
            elif key == ord('t'):
                tracker.record_throw()
            elif key == ord('c'):
                tracker.switch_camera()
            elif key == ord('h'):
                tracker.toggle_handedness()
    finally:
        tracker.close()
        processor.close()
        cv2.destroyAllWindows()

def run_review(config: dict, session_id: str):
    """Plays back a stored session with the pose overlay re-derived from the video."""
    store = SessionStore(config['storage']['root'])
    session = store.get(session_id)
    dispatcher = QueueDispatcher()
    visualizer = Visualizer(config['visualization'])
    is_right_handed = config['visualization'].get('right_handed', True)
    delete_requested = False
    processor = review = None

    try:
        processor = PoseProcessor(config['pose'], static_image_mode=True)
        review = PlaybackReview(store.video_path(session), config['playback'], processor, dispatcher)
        while True:
            dispatcher.drain()
            frame = review.current_frame()
            if frame is not None:
                hud = {'position': review.position, 'duration': review.duration}
                pose = review.current_pose if review.overlay_enabled else None
                cv2.imshow(session.title, visualizer.render(frame, pose, is_right_handed, hud))

            key = cv2.waitKey(15) & 0xFF
            if key == ord('q'):
                break
            elif key == ord(' '):
                review.toggle_playback()
            elif key == ord('j'):
                review.skip_backward()
            elif key == ord('l'):
                review.skip_forward()
            elif key == ord('p'):
                review.toggle_overlay()
            elif key == ord('h'):
                is_right_handed = not is_right_handed
            elif key == ord('d'):
                delete_requested = True
                break
    finally:
        if review is not None:
            review.close()
        if processor is not None:
            processor.close()
        cv2.destroyAllWindows()

    if delete_requested:
        store.delete(session_id)
        print(f"Deleted {session.title}.")

def run_list(config: dict):
    store = SessionStore(config['storage']['root'])
    for s in store.list_sessions():
        angle = f"{int(s.average_elbow_angle)} deg avg" if s.average_elbow_angle is not None else "no angle"
        print(f"{s.id}  {s.formatted_date():<9}  {s.title:<28}  {s.formatted_duration:>6}  "
              f"{s.throw_count:>3} throws  {angle}")
    summary = store.summary()
    print(f"{summary['session_count']} sessions, {summary['total_throws']} throws.")
    for orphan in store.find_orphans():
        logger.warning("Video without a session record: %s", orphan.name)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Darts throwing practice with live pose tracking.")
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help="Path to config.yaml")
    sub = parser.add_subparsers(dest='command')
    sub.add_parser('live', help="Live camera view with recording")
    review = sub.add_parser('review', help="Play back a recorded session with pose overlay")
    review.add_argument('session_id')
    sub.add_parser('list', help="List recorded sessions")
    delete = sub.add_parser('delete', help="Delete a recorded session and its video")
    delete.add_argument('session_id')
    return parser

def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        configure_logging(config['logging']['level'])
        command = args.command or 'live'
        if command == 'live':
            run_live(config)
        elif command == 'review':
            run_review(config, args.session_id)
        elif command == 'list':
            run_list(config)
        elif command == 'delete':
            SessionStore(config['storage']['root']).delete(args.session_id)
    except ThrowEngineError as e:
        print(f"ERROR: {e}")
    except KeyError as e:
        print(f"ERROR: Missing configuration key: {e}. Please check '{args.config}'.")
    except IOError as e:
        print(f"ERROR: Failed to initialize. {e}")
    except Exception as e:
        print(f"An unexpected critical error occurred: {e}")
    finally:
        print("Application terminated.")

if __name__ == "__main__":
    main()
