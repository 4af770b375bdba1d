"""
Kiosk camera module.

Opens the kiosk webcam (local index) or a network stream (RTSP/HTTP) with
retry logic, and reconnects after repeated read failures.
"""

import time
from typing import Callable, Union

import cv2

from .config import Config
from .logging_config import get_logger

logger = get_logger(__name__)


def parse_camera_source(camera_source: str) -> Union[int, str]:
    """Return a webcam index for numeric sources, otherwise the URL."""
    source = camera_source.strip()
    return int(source) if source.isdigit() else source


def connect_camera(
    config: Config,
    max_retries: int = 5,
    sleep: Callable[[float], None] = time.sleep
) -> cv2.VideoCapture:
    """
    Connect to the kiosk camera with retry logic.

    Args:
        config: Service configuration
        max_retries: Maximum connection attempts
        sleep: Sleep function used between attempts

    Returns:
        Opened VideoCapture object

    Raises:
        RuntimeError: If connection fails after max_retries
    """
    source = parse_camera_source(config.camera_source)
    camera_type = 'local' if isinstance(source, int) else 'stream'

    for attempt in range(max_retries):
        logger.info(f'Connecting to {camera_type} camera (attempt {attempt + 1}/{max_retries})...')
        logger.info(f'Camera source: {sanitize_url(str(source))}')

        video_capture = cv2.VideoCapture(source)
        if camera_type == 'local':
            video_capture.set(cv2.CAP_PROP_FRAME_WIDTH, config.frame_width)
            video_capture.set(cv2.CAP_PROP_FRAME_HEIGHT, config.frame_height)
        elif str(source).startswith('rtsp://'):
            video_capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        if video_capture.isOpened():
            ret, frame = video_capture.read()
            if ret and frame is not None:
                logger.info(f'✅ Camera connected ({camera_type})')
                logger.info(f'Frame size: {frame.shape[1]}x{frame.shape[0]}')
                return video_capture
            logger.warning('Camera opened but failed to read frame')
        else:
            logger.warning('Failed to open camera')

        video_capture.release()

        if attempt < max_retries - 1:
            wait_time = 2 ** attempt
            logger.info(f'Retrying in {wait_time} seconds...')
            sleep(wait_time)

    raise RuntimeError(f'Cannot connect to camera after {max_retries} attempts')


def reconnect_camera(
    video_capture: cv2.VideoCapture,
    config: Config,
    consecutive_failures: int
) -> cv2.VideoCapture:
    """
    Release the current capture and connect again.

    Raises:
        RuntimeError: If reconnection fails
    """
    logger.error(f'Too many failures ({consecutive_failures}), reconnecting...')
    video_capture.release()
    time.sleep(2)
    return connect_camera(config)


def sanitize_url(url: str) -> str:
    """
    Remove password from URL for logging.

    Args:
        url: URL with potential password

    Returns:
        Sanitized URL
    """
    if '://' not in url:
        return url

    protocol, rest = url.split('://', 1)
    if '@' not in rest:
        return url

    creds, host = rest.rsplit('@', 1)
    username = creds.split(':', 1)[0]
    return f'{protocol}://{username}@{host}'
