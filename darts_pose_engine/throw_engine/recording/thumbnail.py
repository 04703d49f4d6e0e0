# darts_pose_engine/throw_engine/recording/thumbnail.py
import cv2
import logging
from concurrent.futures import Executor, Future
from typing import Optional

logger = logging.getLogger(__name__)

def generate_thumbnail(video_path, max_size: int = 300, jpeg_quality: int = 70) -> Optional[bytes]:
    """
    Decodes the first frame of a video, fits it inside a max_size box and
    JPEG-encodes it. Returns None if anything along the way fails.
    """
    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            logger.debug("Thumbnail skipped, cannot open %s", video_path)
            return None
        ok, frame = cap.read()
    except cv2.error as e:
        logger.debug("Thumbnail decode failed for %s: %s", video_path, e)
        return None
    finally:
        cap.release()
    if not ok or frame is None:
        return None

    h, w = frame.shape[:2]
    scale = min(max_size / w, max_size / h, 1.0)
    try:
        if scale < 1.0:
            size = (max(1, int(w * scale)), max(1, int(h * scale)))
            frame = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)
        success, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
    except cv2.error as e:
        logger.debug("Thumbnail encode failed for %s: %s", video_path, e)
        return None
    if not success:
        return None
    return buffer.tobytes()

def generate_thumbnail_async(executor: Executor, video_path, max_size: int = 300,
                             jpeg_quality: int = 70) -> Future:
    return executor.submit(generate_thumbnail, video_path, max_size, jpeg_quality)
