"""
Face extraction module.

Turns a captured photo into a face embedding using InsightFace:
- Decodes photos sent as raw bytes, base64 or data URLs
- Picks the most confident detection for live scans
- Applies enrollment-grade checks (single face, composite quality)
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

import cv2
import numpy as np

from ..config import Config
from ..logging_config import get_logger
from .preprocessing import enhance_photo
from .quality import calculate_face_quality, is_face_acceptable

logger = get_logger(__name__)

Photo = Union[str, bytes, np.ndarray]


@dataclass
class FaceDetectionResult:
    """Outcome of processing a single photo."""

    success: bool
    error: Optional[str] = None
    face_detected: bool = False
    embedding: Optional[np.ndarray] = None
    quality: Optional[int] = None
    face_box: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'error': self.error,
            'faceDetected': self.face_detected,
            'quality': self.quality,
            'faceBox': self.face_box,
            'embeddingDimensions': len(self.embedding) if self.embedding is not None else None,
        }


def decode_photo(photo: Photo) -> Optional[np.ndarray]:
    """
    Decode a photo into a BGR image.

    Accepts an already decoded image, encoded image bytes, a pure base64
    string, or a data URL such as ``data:image/jpeg;base64,...``.

    Returns:
        BGR image or None if the photo cannot be decoded
    """
    if isinstance(photo, np.ndarray):
        return photo if photo.size else None

    if isinstance(photo, str):
        payload = photo.strip()
        if payload.startswith('data:'):
            payload = payload.partition(',')[2]
        try:
            data = base64.b64decode(payload)
        except (binascii.Error, ValueError):
            logger.warning('Photo is not valid base64')
            return None
    else:
        data = photo

    if not data:
        return None

    image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        logger.warning('Failed to decode photo')
    return image


def _detect(image: np.ndarray, face_app: Any, config: Config) -> list:
    faces = face_app.get(image)
    return [
        face for face in faces
        if float(getattr(face, 'det_score', 1.0)) >= config.detection_threshold
    ]


def _box_dict(bbox: Sequence[float]) -> Dict[str, float]:
    x1, y1, x2, y2 = (float(v) for v in bbox)
    return {'x': x1, 'y': y1, 'width': x2 - x1, 'height': y2 - y1}


def extract_face_descriptor(photo: Photo, face_app: Any, config: Config) -> Optional[np.ndarray]:
    """
    Extract the embedding of the most confident face in a photo.

    Args:
        photo: Photo in any form accepted by decode_photo
        face_app: InsightFace FaceAnalysis instance
        config: Service configuration

    Returns:
        Normalised float32 embedding, or None if no face was found
    """
    image = decode_photo(photo)
    if image is None:
        return None

    faces = _detect(image, face_app, config)
    if not faces:
        logger.info('No face detected')
        return None

    face = max(faces, key=lambda f: float(getattr(f, 'det_score', 1.0)))
    embedding = np.asarray(face.normed_embedding, dtype=np.float32)
    logger.debug(f'Face detected, descriptor length: {len(embedding)}')
    return embedding


def process_face_image(photo: Photo, face_app: Any, config: Config) -> FaceDetectionResult:
    """
    Process an enrollment photo.

    The photo must contain exactly one face whose composite quality
    reaches config.quality_threshold.

    Args:
        photo: Photo in any form accepted by decode_photo
        face_app: InsightFace FaceAnalysis instance
        config: Service configuration

    Returns:
        FaceDetectionResult with the embedding on success
    """
    image = decode_photo(photo)
    if image is None:
        return FaceDetectionResult(success=False, error='Invalid image data')

    faces = _detect(enhance_photo(image, config), face_app, config)

    if not faces:
        return FaceDetectionResult(
            success=False,
            face_detected=False,
            error='No face detected in the image'
        )

    if len(faces) > 1:
        return FaceDetectionResult(
            success=False,
            face_detected=True,
            error='Multiple faces detected. Please use an image with only one face.'
        )

    face = faces[0]
    quality = calculate_face_quality(face.bbox, image.shape)

    x1, y1, x2, y2 = (max(0, int(v)) for v in face.bbox)
    acceptable, metrics = is_face_acceptable(image[y1:y2, x1:x2], face.bbox, config)
    if not acceptable:
        logger.info(
            f"Face rejected: height={metrics.get('height')}px, "
            f"blur={metrics.get('blur_score', 0):.1f}"
        )

    if quality < config.quality_threshold or not acceptable:
        return FaceDetectionResult(
            success=False,
            face_detected=True,
            quality=quality,
            face_box=_box_dict(face.bbox),
            error='Face quality too low. Please use a clearer, well-lit frontal image.'
        )

    return FaceDetectionResult(
        success=True,
        face_detected=True,
        embedding=np.asarray(face.normed_embedding, dtype=np.float32),
        quality=quality,
        face_box=_box_dict(face.bbox),
    )


def crop_face(image: np.ndarray, face_box: Dict[str, float], padding: int = 20) -> Optional[bytes]:
    """
    Crop a face with padding, clamped to the image bounds.

    Args:
        image: Source BGR image
        face_box: Box with x, y, width, height
        padding: Pixels added on every side

    Returns:
        JPEG bytes of the crop, or None if encoding failed
    """
    img_h, img_w = image.shape[:2]
    x = max(0, int(face_box['x']) - padding)
    y = max(0, int(face_box['y']) - padding)
    width = min(img_w - x, int(face_box['width']) + padding * 2)
    height = min(img_h - y, int(face_box['height']) + padding * 2)

    crop = image[y:y + height, x:x + width]
    if crop.size == 0:
        return None

    ok, buffer = cv2.imencode('.jpg', crop, [cv2.IMWRITE_JPEG_QUALITY, 90])
    return buffer.tobytes() if ok else None
