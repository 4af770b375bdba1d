"""
Local embeddings store.

Keeps a copy of every embedding written during enrollment so it can be
re-synced to the database later.
"""

import os
import pickle
import threading
import time
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..logging_config import get_logger

logger = get_logger(__name__)


class LocalEmbeddingStore:
    """
    Pickle-backed map of student_id -> embedding.

    A missing or unreadable file reads as an empty store.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Dict]:
        if not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, 'rb') as f:
                data = pickle.load(f)
        except (OSError, ValueError, pickle.UnpicklingError, EOFError) as e:
            logger.error(f'Failed to load local embeddings: {e}')
            return {}

        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Dict]) -> None:
        tmp_path = f'{self.path}.tmp'
        with open(tmp_path, 'wb') as f:
            pickle.dump(data, f)
        os.replace(tmp_path, self.path)

    def save(self, student_id: str, embedding: Sequence[float]) -> None:
        """Store an embedding, replacing any previous one for the student."""
        with self._lock:
            data = self._read()
            data[student_id] = {
                'descriptor': np.asarray(embedding, dtype=np.float32),
                'timestamp': time.time(),
            }
            self._write(data)
        logger.debug(f'Saved local embedding for {student_id}')

    def get(self, student_id: str) -> Optional[np.ndarray]:
        with self._lock:
            entry = self._read().get(student_id)
        return entry['descriptor'] if entry else None

    def has(self, student_id: str) -> bool:
        return self.get(student_id) is not None

    def load_all(self) -> List[Dict]:
        """All entries as dicts with student_id, descriptor and timestamp."""
        with self._lock:
            data = self._read()
        return [
            {'student_id': student_id, **entry}
            for student_id, entry in data.items()
        ]

    def clear(self) -> None:
        with self._lock:
            if os.path.exists(self.path):
                os.remove(self.path)
        logger.info('Local embeddings cleared')

    def __len__(self) -> int:
        with self._lock:
            return len(self._read())
