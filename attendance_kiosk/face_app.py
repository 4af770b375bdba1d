"""
InsightFace initialization module.

Provides face detection and embedding extraction using InsightFace models.
"""

from insightface.app import FaceAnalysis

from .config import Config
from .logging_config import get_logger

logger = get_logger(__name__)


def initialize_face_app(config: Config) -> FaceAnalysis:
    """
    Initialize InsightFace FaceAnalysis with detection and recognition only.

    Args:
        config: Service configuration

    Returns:
        Initialized FaceAnalysis instance
    """
    logger.info('Loading face recognition models...')

    face_app = FaceAnalysis(
        allowed_modules=['detection', 'recognition'],
        providers=['CPUExecutionProvider'],
    )
    face_app.prepare(
        ctx_id=0,
        det_thresh=config.detection_threshold,
        det_size=config.det_size,
    )

    logger.info(f'✅ Face models loaded (det_size={config.det_size})')

    return face_app
