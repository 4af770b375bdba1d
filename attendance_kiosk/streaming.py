"""
Video streaming module.

Holds the latest kiosk frame and generates the MJPEG preview stream.
Thread-safe frame access using a lock.
"""

import threading
import time
from typing import Generator, Optional

import cv2
import numpy as np


class FrameBuffer:
    """Latest frame shared between the capture loop and HTTP clients."""

    def __init__(self):
        self._frame: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def set_frame(self, frame: Optional[np.ndarray]) -> None:
        with self._lock:
            self._frame = frame.copy() if frame is not None else None

    def get_frame_copy(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame.copy() if self._frame is not None else None

    def is_streaming(self) -> bool:
        with self._lock:
            return self._frame is not None


def encode_jpeg(frame: np.ndarray, quality: int = 85) -> Optional[bytes]:
    ok, buffer = cv2.imencode('.jpg', frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    return buffer.tobytes() if ok else None


def generate_mjpeg_frames(
    frames: FrameBuffer,
    stop_flag: Optional[threading.Event] = None
) -> Generator[bytes, None, None]:
    """
    Generate MJPEG frames.

    Yields:
        JPEG frame bytes with multipart headers
    """
    while not (stop_flag and stop_flag.is_set()):
        frame = frames.get_frame_copy()

        if frame is None:
            time.sleep(0.1)
            continue

        jpeg = encode_jpeg(frame)
        if jpeg is not None:
            yield (b'--frame\r\n'
                   b'Content-Type: image/jpeg\r\n\r\n' + jpeg + b'\r\n')

        # ~30 FPS
        time.sleep(0.033)
