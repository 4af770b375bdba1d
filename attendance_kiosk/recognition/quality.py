"""
Face quality assessment module.

Evaluates face quality based on:
- Size (height in pixels, share of the frame)
- Sharpness (Laplacian variance)
- Position and aspect ratio of the detected box
"""

import math
from typing import Dict, Sequence, Tuple

import cv2
import numpy as np

from ..config import Config

IDEAL_SIZE_RATIO = 20.0
IDEAL_ASPECT_RATIO = 0.75
SYMMETRY_BASE_SCORE = 70.0


def compute_blur_score(gray_face: np.ndarray) -> float:
    """
    Compute blur score using Laplacian variance.

    Higher values indicate sharper images.
    """
    return float(cv2.Laplacian(gray_face, cv2.CV_64F).var())


def is_face_acceptable(
    face_img_bgr: np.ndarray,
    bbox: Sequence[float],
    config: Config
) -> Tuple[bool, Dict[str, float]]:
    """
    Check if a face crop is sharp and large enough for recognition.

    Criteria:
    - Face height >= min_face_height_pixels
    - Blur score >= min_blur_variance

    Args:
        face_img_bgr: Face crop in BGR format
        bbox: Bounding box [x1, y1, x2, y2] in frame coordinates
        config: Service configuration

    Returns:
        Tuple of (acceptable, metrics) with height, width, blur_score
        and brightness
    """
    x1, y1, x2, y2 = (int(v) for v in bbox)
    face_height = y2 - y1
    face_width = x2 - x1

    if face_img_bgr is None or face_img_bgr.size == 0:
        return False, {'height': float(face_height), 'width': float(face_width)}

    gray_face = cv2.cvtColor(face_img_bgr, cv2.COLOR_BGR2GRAY)
    blur_score = compute_blur_score(gray_face)

    metrics = {
        'height': float(face_height),
        'width': float(face_width),
        'blur_score': blur_score,
        'brightness': float(np.mean(gray_face)),
    }

    if face_height < config.min_face_height_pixels:
        return False, metrics

    if blur_score < config.min_blur_variance:
        return False, metrics

    return True, metrics


def calculate_face_quality(bbox: Sequence[float], image_shape: Sequence[int]) -> int:
    """
    Composite quality score for a detected face.

    Weights:
    - 30% size: face area as a share of the image (20% is ideal)
    - 20% position: distance of the face center from the image center
    - 20% aspect ratio: width / height against 0.75
    - 30% symmetry: fixed base score

    Args:
        bbox: Bounding box [x1, y1, x2, y2]
        image_shape: Image shape (height, width[, channels])

    Returns:
        Score clamped to [0, 100]
    """
    x1, y1, x2, y2 = (float(v) for v in bbox)
    img_h, img_w = float(image_shape[0]), float(image_shape[1])
    box_w = x2 - x1
    box_h = y2 - y1

    if box_w <= 0 or box_h <= 0 or img_w <= 0 or img_h <= 0:
        return 0

    size_ratio = (box_w * box_h) / (img_w * img_h) * 100
    size_score = min(100.0, size_ratio / IDEAL_SIZE_RATIO * 100)

    center_x = x1 + box_w / 2
    center_y = y1 + box_h / 2
    distance = math.hypot(center_x - img_w / 2, center_y - img_h / 2)
    max_distance = math.hypot(img_w, img_h) / 2
    position_score = 100 * (1 - distance / max_distance)

    aspect_ratio = box_w / box_h
    ratio_score = 100 * (1 - abs(aspect_ratio - IDEAL_ASPECT_RATIO) / IDEAL_ASPECT_RATIO)

    score = (
        size_score * 0.3
        + position_score * 0.2
        + ratio_score * 0.2
        + SYMMETRY_BASE_SCORE * 0.3
    )

    return int(round(max(0.0, min(100.0, score))))
