"""
Recognition algorithms package.

Contains modules for:
- Face quality assessment
- Image preprocessing
- Face extraction
- Embedding matching
"""

from .quality import compute_blur_score, is_face_acceptable, calculate_face_quality
from .preprocessing import enhance_photo
from .extraction import (
    FaceDetectionResult,
    decode_photo,
    extract_face_descriptor,
    process_face_image,
    crop_face,
)
from .matching import (
    MatchCandidate,
    compare_faces,
    find_best_match,
    rank_matches,
    fit_embedding_dimensions,
    confidence_label,
)

__all__ = [
    'compute_blur_score',
    'is_face_acceptable',
    'calculate_face_quality',
    'enhance_photo',
    'FaceDetectionResult',
    'decode_photo',
    'extract_face_descriptor',
    'process_face_image',
    'crop_face',
    'MatchCandidate',
    'compare_faces',
    'find_best_match',
    'rank_matches',
    'fit_embedding_dimensions',
    'confidence_label',
]
