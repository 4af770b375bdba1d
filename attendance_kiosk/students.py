"""
Student records module.

Reads and writes student rows (identity, enrollment status, face embedding)
in the remote database.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import Config
from .database import SupabaseClient
from .logging_config import get_logger

logger = get_logger(__name__)

MATCH_COLUMNS = 'id, student_id, name, matric_number, face_embedding, face_match_threshold'


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_embedding(raw: Any) -> Optional[np.ndarray]:
    """
    Parse a stored embedding.

    Embeddings are stored as JSON arrays; older rows hold the array
    serialised as a JSON string.

    Returns:
        float32 vector, or None if missing, empty or malformed
    """
    if raw is None:
        return None

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None

    if not isinstance(raw, (list, tuple)) or len(raw) == 0:
        return None

    try:
        vector = np.asarray(raw, dtype=np.float32)
    except (TypeError, ValueError):
        return None

    return vector if vector.ndim == 1 else None


class StudentNotFoundError(LookupError):
    """Raised when a student row does not exist."""


class StudentRepository:
    """Student rows in the students table."""

    def __init__(self, db: SupabaseClient, config: Config):
        self.db = db
        self.table = config.students_table
        self.candidate_limit = config.candidate_limit

    def fetch_match_candidates(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch enrolled, active students that have a face embedding.

        Args:
            limit: Maximum rows (defaults to config.candidate_limit)
        """
        rows = self.db.select(
            self.table,
            MATCH_COLUMNS,
            filters={
                'enrollment_status': 'eq.enrolled',
                'is_active': 'eq.true',
                'face_embedding': 'not.is.null',
            },
            limit=limit or self.candidate_limit,
        )
        logger.debug(f'Fetched {len(rows)} match candidates')
        return rows

    def find_similar(
        self,
        query_embedding: Sequence[float],
        threshold: float,
        max_results: int
    ) -> List[Dict[str, Any]]:
        """
        Database-side similarity search (find_similar_faces function).

        Returns rows with student_id, name, matric_number and
        similarity_score, best first.
        """
        return self.db.rpc('find_similar_faces', {
            'query_embedding': list(query_embedding),
            'similarity_threshold': threshold,
            'max_results': max_results,
        }) or []

    def get(self, row_id: Any) -> Optional[Dict[str, Any]]:
        return self.db.select_one(self.table, filters={'id': f'eq.{row_id}'})

    def find_by_matric(self, matric_number: str) -> Optional[Dict[str, Any]]:
        return self.db.select_one(
            self.table, filters={'matric_number': f'eq.{matric_number}'}
        )

    def create(self, student: Dict[str, Any]) -> Dict[str, Any]:
        rows = self.db.insert(self.table, [student])
        return rows[0]

    def update_face_embedding(self, row_id: Any, embedding: Sequence[float]) -> None:
        """Store an embedding as a JSON array of floats."""
        self.db.update(
            self.table,
            {
                'face_embedding': [float(v) for v in embedding],
                'last_face_update': utc_now_iso(),
            },
            filters={'id': f'eq.{row_id}'},
        )
        logger.info(f'Face embedding updated for student {row_id}')

    def update_face_embedding_by_student_id(self, student_id: str, embedding: Sequence[float]) -> None:
        self.db.update(
            self.table,
            {
                'face_embedding': [float(v) for v in embedding],
                'last_face_update': utc_now_iso(),
            },
            filters={'student_id': f'eq.{student_id}'},
        )

    def touch_last_face_scan(self, student_id: str) -> None:
        self.db.update(
            self.table,
            {'last_face_scan': utc_now_iso()},
            filters={'student_id': f'eq.{student_id}'},
        )
