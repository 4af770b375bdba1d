"""Shared fixtures: in-memory database, fake face model, photos and embeddings."""

import base64
import copy
import dataclasses
import itertools
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from attendance_kiosk.config import load_config
from attendance_kiosk.database import DatabaseError, UNIQUE_VIOLATION

EMBEDDING_SIZE = 512


def unit_vector(index: int, size: int = EMBEDDING_SIZE) -> np.ndarray:
    vector = np.zeros(size, dtype=np.float32)
    vector[index] = 1.0
    return vector


def rotated(cos: float, base: int = 0, other: int = 1) -> np.ndarray:
    """Unit vector whose cosine with unit_vector(base) is `cos`."""
    vector = cos * unit_vector(base) + np.sqrt(1 - cos ** 2) * unit_vector(other)
    return vector.astype(np.float32)


def make_face(bbox=(245, 140, 395, 340), embedding=None, det_score=0.9):
    return SimpleNamespace(
        bbox=np.array(bbox, dtype=np.float32),
        det_score=det_score,
        normed_embedding=unit_vector(0) if embedding is None else embedding,
    )


def make_image(height: int = 480, width: int = 640, seed: int = 7) -> np.ndarray:
    """Noisy image, sharp enough to pass the blur check."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def make_photo(height: int = 480, width: int = 640) -> str:
    ok, buffer = cv2.imencode('.png', make_image(height, width))
    assert ok
    return 'data:image/png;base64,' + base64.b64encode(buffer.tobytes()).decode('ascii')


def student_row(row_id, student_id, name, embedding, **extra):
    row = {
        'id': row_id,
        'student_id': student_id,
        'name': name,
        'matric_number': student_id,
        'enrollment_status': 'enrolled',
        'is_active': True,
        'face_embedding': None if embedding is None else [float(v) for v in embedding],
        'face_match_threshold': None,
    }
    row.update(extra)
    return row


class FakeFaceApp:
    """Stands in for InsightFace FaceAnalysis; returns preset faces."""

    def __init__(self, faces=None):
        self.faces = list(faces or [])
        self.calls = 0

    def get(self, image):
        self.calls += 1
        return list(self.faces)


def _format(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _matches(row, filters) -> bool:
    for column, expression in (filters or {}).items():
        value = row.get(column)
        if expression == 'not.is.null':
            if value is None:
                return False
        elif expression == 'is.null':
            if value is not None:
                return False
        elif expression.startswith('eq.'):
            if value is None or _format(value) != expression[3:]:
                return False
        else:
            raise AssertionError(f'Unsupported filter {expression}')
    return True


class FakeDatabase:
    """In-memory stand-in for SupabaseClient."""

    def __init__(self):
        self.tables = {}
        self.unique = {}
        self.fail = set()
        self.rpc_handler = None
        self.rpc_calls = []
        self._ids = itertools.count(1000)

    def rows(self, table):
        return self.tables.setdefault(table, [])

    def _check(self, operation):
        if operation in self.fail:
            raise DatabaseError(f'{operation} failed', status=500)

    def select(self, table, columns='*', filters=None, limit=None, order=None):
        self._check('select')
        found = [copy.deepcopy(r) for r in self.rows(table) if _matches(r, filters)]
        return found[:limit] if limit is not None else found

    def select_one(self, table, columns='*', filters=None):
        rows = self.select(table, columns, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table, rows):
        self._check('insert')
        stored = []
        for row in rows:
            row = dict(row)
            row.setdefault('id', next(self._ids))
            key_columns = self.unique.get(table)
            if key_columns:
                key = tuple(row.get(c) for c in key_columns)
                if any(tuple(r.get(c) for c in key_columns) == key for r in self.rows(table)):
                    raise DatabaseError('duplicate key value', status=409, code=UNIQUE_VIOLATION)
            self.rows(table).append(row)
            stored.append(copy.deepcopy(row))
        return stored

    def update(self, table, values, filters):
        self._check('update')
        updated = []
        for row in self.rows(table):
            if _matches(row, filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    def rpc(self, function, params):
        self.rpc_calls.append((function, params))
        if self.rpc_handler is None:
            raise DatabaseError(f'Could not find the function {function}', status=404, code='PGRST202')
        return self.rpc_handler(function, params)

    def ping(self, table):
        return 'select' not in self.fail


@pytest.fixture
def config(tmp_path):
    return dataclasses.replace(
        load_config(),
        students_table='students',
        attendance_table='student_attendance',
        camera_source='0',
        kiosk_id='test-kiosk',
        min_face_height_pixels=40,
        min_blur_variance=50.0,
        quality_threshold=50,
        enable_preprocessing=False,
        detection_threshold=0.5,
        match_threshold=0.65,
        max_matches=5,
        candidate_limit=50,
        high_confidence=0.8,
        use_vector_search=False,
        vector_dimensions=128,
        vector_max_results=3,
        capture_mode='manual',
        capture_interval_seconds=5.0,
        countdown_seconds=1.0,
        result_hold_seconds=3.0,
        embeddings_store=str(tmp_path / 'embeddings.pkl'),
        default_course_code=None,
        default_course_title=None,
        default_level=None,
    )


@pytest.fixture
def db():
    database = FakeDatabase()
    database.unique['student_attendance'] = ('student_id', 'course_code', 'attendance_date')
    return database


@pytest.fixture
def photo():
    return make_photo()
