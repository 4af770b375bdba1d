"""
Kiosk capture loop.

Orchestrates the camera side of the kiosk:
- Camera connection
- Live preview publishing
- Capture state machine (manual / auto capture)
- Attendance scans on captured frames
"""

import threading
import time
from typing import Optional

import cv2
import numpy as np

from .app import create_app
from .camera import connect_camera, reconnect_camera
from .capture import CaptureState
from .database import DatabaseError
from .kiosk import Kiosk, NoCourseSessionError
from .logging_config import get_logger

logger = get_logger(__name__)

MAX_FAILURES = 10


def start_http_server(kiosk: Kiosk) -> None:
    """Run the Flask server (blocking)."""
    logger.info(f'Starting kiosk HTTP server on port {kiosk.config.http_port}...')
    app = create_app(kiosk)
    app.run(
        host='0.0.0.0',
        port=kiosk.config.http_port,
        threaded=True,
        debug=False,
        use_reloader=False
    )


def process_frame(kiosk: Kiosk, frame: np.ndarray) -> None:
    """
    Advance the capture state machine for one frame.

    Runs a scan when a capture fires and publishes the annotated frame.
    """
    trigger = kiosk.controller.tick()

    if trigger is not None:
        logger.info(f'📸 {trigger.value.capitalize()} capture')
        try:
            kiosk.controller.finish(kiosk.handle_trigger(trigger, frame.copy()))
        except (DatabaseError, NoCourseSessionError) as e:
            logger.error(f'Capture failed: {e}')
            kiosk.controller.fail(str(e))
        except Exception as e:
            logger.exception(f'Capture processing error: {e}')
            kiosk.controller.fail(str(e))

    kiosk.frames.set_frame(draw_overlay(frame.copy(), kiosk))


def run(kiosk: Kiosk, stop_flag: Optional[threading.Event] = None) -> None:
    """
    Main capture loop.

    Args:
        kiosk: Kiosk instance
        stop_flag: Optional threading.Event to signal graceful shutdown
    """
    http_thread = threading.Thread(target=start_http_server, args=(kiosk,), daemon=True)
    http_thread.start()
    logger.info(f'Video stream: http://localhost:{kiosk.config.http_port}/video_feed')

    video_capture = connect_camera(kiosk.config)
    kiosk.camera_attached = True
    consecutive_failures = 0

    logger.info('🎬 Starting capture loop...')

    try:
        while not (stop_flag and stop_flag.is_set()):
            ret, frame = video_capture.read()

            if not ret or frame is None:
                consecutive_failures += 1
                logger.warning(f'Failed to read frame ({consecutive_failures}/{MAX_FAILURES})')

                if consecutive_failures >= MAX_FAILURES:
                    video_capture = reconnect_camera(video_capture, kiosk.config, consecutive_failures)
                    consecutive_failures = 0
                else:
                    time.sleep(0.5)
                continue

            consecutive_failures = 0

            if not kiosk.controller.enabled:
                kiosk.frames.set_frame(None)
                time.sleep(0.1)
                continue

            process_frame(kiosk, frame)
            time.sleep(0.03)

        logger.info('Stop signal received, exiting gracefully...')

    finally:
        kiosk.camera_attached = False
        video_capture.release()
        logger.info('Camera released')


def _put_text(frame, text, origin, scale, color, thickness=2):
    # Shadow first for readability on bright backgrounds
    cv2.putText(frame, text, origin, cv2.FONT_HERSHEY_SIMPLEX, scale, (0, 0, 0), thickness + 2)
    cv2.putText(frame, text, origin, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness)


def draw_overlay(frame: np.ndarray, kiosk: Kiosk) -> np.ndarray:
    """
    Draw capture state on a preview frame.

    Args:
        frame: Frame to draw on
        kiosk: Kiosk instance

    Returns:
        Frame with overlay
    """
    controller = kiosk.controller
    course = kiosk.course
    height, width = frame.shape[:2]

    status_text = (
        f"{controller.mode.value.upper()} | "
        f"{controller.state.value} | "
        f"{course.course_code if course else 'no course'}"
    )
    _put_text(frame, status_text, (10, 30), 0.6, (0, 255, 0))

    countdown = controller.countdown_remaining()
    if countdown is not None:
        _put_text(frame, str(countdown), (width // 2 - 25, height // 2 + 25), 3.0, (255, 255, 255), 6)

    result = controller.last_result
    if controller.state == CaptureState.RESULT and result:
        if result.get('success'):
            student = result.get('student') or (result.get('matches') or [{}])[0]
            label = f"{student.get('name', '')}"
            if result.get('confidence') is not None:
                label += f" ({result['confidence']:.0%})"
            color = (0, 255, 0)
        else:
            label = result.get('error') or 'Try again'
            color = (0, 0, 255)

        cv2.rectangle(frame, (0, height - 40), (width, height), color, cv2.FILLED)
        cv2.putText(frame, label, (10, height - 12),
                    cv2.FONT_HERSHEY_DUPLEX, 0.6, (255, 255, 255), 1)

    return frame
