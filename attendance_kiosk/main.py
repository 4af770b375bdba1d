"""
Attendance Kiosk - Main Entry Point

Starts the kiosk HTTP API and, when a camera source is configured, the
capture loop driving the kiosk webcam.
"""

import argparse
import dataclasses
import os
import sys
import threading
from pathlib import Path

from .config import load_config
from .database import DatabaseError, SupabaseClient
from .logging_config import setup_logging, get_logger
from .utils.timing import retry_with_backoff

logger = get_logger(__name__)


def _load_local_env() -> None:
    """Load environment variables from a .env file in the working directory."""
    env_path = Path.cwd() / '.env'
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        os.environ.setdefault(key.strip(), value.strip())


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Attendance Kiosk - Face Recognition Attendance'
    )

    parser.add_argument(
        '--camera-source',
        type=str,
        help='Webcam index or stream URL (or set CAMERA_SOURCE)'
    )

    parser.add_argument(
        '--no-camera',
        action='store_true',
        help='Serve the API only; photos come from the browser'
    )

    parser.add_argument(
        '--port',
        type=int,
        help='HTTP port (or set HTTP_PORT)'
    )

    parser.add_argument(
        '--mode',
        choices=['manual', 'auto'],
        help='Capture mode (or set CAPTURE_MODE)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Main entry point."""
    _load_local_env()
    args = parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        sys.exit(2)

    overrides = {}
    if args.camera_source is not None:
        overrides['camera_source'] = args.camera_source
    if args.no_camera:
        overrides['camera_source'] = ''
    if args.port is not None:
        overrides['http_port'] = args.port
    if args.mode is not None:
        overrides['capture_mode'] = args.mode
    if args.debug:
        overrides['debug_mode'] = True
    config = dataclasses.replace(config, **overrides)

    setup_logging(config.kiosk_id, config.debug_mode)
    logger = get_logger(__name__)

    logger.info('=' * 60)
    logger.info('Attendance Kiosk')
    logger.info('=' * 60)
    logger.info(f'Database: {config.supabase_url}')
    logger.info(f"Camera: {config.camera_source or 'disabled (browser capture)'}")
    logger.info(f'Capture mode: {config.capture_mode}')
    logger.info(f'Match threshold: {config.match_threshold}')
    logger.info('=' * 60)

    # Imported late so --help works without the model stack installed
    from .face_app import initialize_face_app
    from .kiosk import Kiosk
    from . import kiosk_loop

    db = SupabaseClient.from_config(config)
    try:
        retry_with_backoff(
            lambda: db.select(config.students_table, 'id', limit=1),
            retry_on=(DatabaseError,),
        )
        logger.info('✅ Database reachable')
    except DatabaseError as e:
        logger.warning(f'Database not reachable yet, continuing: {e}')

    kiosk = Kiosk(config, initialize_face_app(config), db)
    stop_flag = threading.Event()

    try:
        if config.camera_source:
            kiosk_loop.run(kiosk, stop_flag)
        else:
            kiosk.controller.disable()
            kiosk_loop.start_http_server(kiosk)

    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt, shutting down...')
        stop_flag.set()
        sys.exit(0)
    except Exception as e:
        logger.error(f'Fatal error: {e}', exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
