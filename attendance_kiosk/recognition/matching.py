"""
Embedding matching module.

Matches a face embedding against stored student embeddings using Euclidean
distance converted to a similarity score:

    similarity = max(0, 1 - distance / 2)

For L2-normalised embeddings the distance lies in [0, 2], so the score lies
in [0, 1] (1.0 = identical, 0.0 = opposite).
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..logging_config import get_logger
from ..students import parse_embedding

logger = get_logger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.65
DEFAULT_MAX_MATCHES = 5


@dataclass
class MatchCandidate:
    """A stored student whose embedding scored above the match threshold."""

    id: Any
    student_id: str
    name: str
    matric_number: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compare_faces(descriptor1: Sequence[float], descriptor2: Sequence[float]) -> float:
    """
    Compare two face descriptors.

    Args:
        descriptor1: First embedding
        descriptor2: Second embedding

    Returns:
        Similarity in range [0, 1]

    Raises:
        ValueError: If the descriptors differ in length
    """
    a = np.asarray(descriptor1, dtype=np.float32)
    b = np.asarray(descriptor2, dtype=np.float32)

    if a.shape != b.shape:
        raise ValueError(f'Descriptor length mismatch: {a.shape} vs {b.shape}')

    distance = float(np.linalg.norm(a - b))
    return max(0.0, 1.0 - distance / 2.0)


def find_best_match(
    descriptor: Sequence[float],
    stored: Iterable[Tuple[Any, Sequence[float]]],
    threshold: float = DEFAULT_MATCH_THRESHOLD
) -> Tuple[Optional[Any], float]:
    """
    Find the single best stored descriptor.

    Args:
        descriptor: Captured embedding
        stored: Pairs of (owner id, embedding)
        threshold: Similarity a match must exceed

    Returns:
        Tuple of (owner id, confidence) or (None, 0.0) if nothing matched
    """
    best_id: Optional[Any] = None
    best_confidence = 0.0

    for owner_id, stored_descriptor in stored:
        similarity = compare_faces(descriptor, stored_descriptor)
        if similarity > threshold and similarity > best_confidence:
            best_id = owner_id
            best_confidence = similarity

    return best_id, best_confidence


def rank_matches(
    descriptor: Sequence[float],
    candidates: Iterable[Dict[str, Any]],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    max_matches: int = DEFAULT_MAX_MATCHES
) -> List[MatchCandidate]:
    """
    Score student rows against a captured embedding and keep the best.

    A row's own face_match_threshold, when set, replaces the default
    threshold. Rows whose embedding is missing or unusable are skipped.

    Args:
        descriptor: Captured embedding
        candidates: Student rows with a face_embedding column
        threshold: Default similarity a match must exceed
        max_matches: Maximum number of matches returned

    Returns:
        Matches sorted by confidence, best first
    """
    matches: List[MatchCandidate] = []

    for row in candidates:
        stored = parse_embedding(row.get('face_embedding'))
        if stored is None:
            logger.warning(f"Skipping student {row.get('id')}: unusable embedding")
            continue

        try:
            similarity = compare_faces(descriptor, stored)
        except ValueError as e:
            logger.warning(f"Skipping student {row.get('id')}: {e}")
            continue

        logger.debug(f"Comparing with {row.get('name')}: {similarity:.3f}")

        override = row.get('face_match_threshold')
        row_threshold = threshold if override is None else float(override)
        if similarity > row_threshold:
            matches.append(MatchCandidate(
                id=row.get('id'),
                student_id=row.get('student_id') or '',
                name=row.get('name') or '',
                matric_number=row.get('matric_number') or '',
                confidence=similarity,
            ))

    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches[:max_matches]


def fit_embedding_dimensions(embedding: Sequence[float], size: int = 128) -> List[float]:
    """
    Resize an embedding to a fixed length for database-side vector search.

    Shorter vectors are zero-padded; longer ones are split into `size`
    contiguous segments and each segment is averaged.

    Args:
        embedding: Source embedding
        size: Target length

    Returns:
        List of `size` floats
    """
    values = [float(v) for v in embedding]

    if len(values) <= size:
        return values + [0.0] * (size - len(values))

    segment_size = len(values) / size
    result: List[float] = []
    for i in range(size):
        start = int(i * segment_size)
        end = int((i + 1) * segment_size)
        segment = values[start:end]
        result.append(round(sum(segment) / len(segment), 6))

    return result


def confidence_label(confidence: float, high_confidence: float = 0.8) -> str:
    """Human-readable confidence band for a match."""
    return 'High Confidence' if confidence > high_confidence else 'Medium Confidence'
