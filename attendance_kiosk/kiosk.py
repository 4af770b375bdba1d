"""
Kiosk module.

Wires the face model, the remote repositories, the local embeddings store
and the capture controller together, and exposes the kiosk operations used
by the HTTP API and the capture loop.
"""

import base64
import threading
import time
from typing import Any, Dict, List, Optional

from .attendance import (
    AttendanceBook,
    AttendanceResult,
    CourseSession,
    ScanResult,
    confirm_attendance,
    find_matches,
    mark_attendance,
)
from .capture import CaptureController, CaptureTrigger
from .config import Config
from .database import SupabaseClient
from .enrollment import (
    EnrollmentRequest,
    EnrollmentResult,
    enroll_student,
    process_existing_student_photo,
    sync_local_embeddings,
)
from .logging_config import get_logger
from .recognition.extraction import Photo, crop_face, decode_photo, process_face_image
from .recognition.matching import MatchCandidate
from .streaming import FrameBuffer
from .students import StudentRepository
from .utils.cache import LocalEmbeddingStore
from .utils.timing import format_uptime

logger = get_logger(__name__)


class NoCourseSessionError(Exception):
    """Raised when attendance is requested before a course is selected."""


class Kiosk:
    """A single attendance kiosk."""

    def __init__(
        self,
        config: Config,
        face_app: Any,
        db: SupabaseClient,
        store: Optional[LocalEmbeddingStore] = None,
        controller: Optional[CaptureController] = None,
        frames: Optional[FrameBuffer] = None
    ):
        self.config = config
        self.face_app = face_app
        self.db = db
        self.students = StudentRepository(db, config)
        self.book = AttendanceBook(db, config)
        self.store = store or LocalEmbeddingStore(config.embeddings_store)
        self.controller = controller or CaptureController(config)
        self.frames = frames or FrameBuffer()
        self.camera_attached = False
        self.started_at = time.time()

        self._course_lock = threading.Lock()
        self._course: Optional[CourseSession] = None
        if config.default_course_code:
            self._course = CourseSession(
                course_code=config.default_course_code,
                course_title=config.default_course_title or config.default_course_code,
                level=config.default_level,
            )

    @property
    def course(self) -> Optional[CourseSession]:
        with self._course_lock:
            return self._course

    def set_course(self, course: CourseSession) -> None:
        with self._course_lock:
            self._course = course
        logger.info(f'Course session set to {course.course_code} ({course.course_title})')

    def _require_course(self) -> CourseSession:
        course = self.course
        if course is None:
            raise NoCourseSessionError('No course session selected')
        return course

    # Attendance

    def scan(self, photo: Photo) -> ScanResult:
        return find_matches(photo, self.face_app, self.students, self.config)

    def mark(self, photo: Photo) -> AttendanceResult:
        course = self._require_course()
        return mark_attendance(
            photo, course, self.face_app, self.students, self.book, self.config
        )

    def confirm(self, candidate: MatchCandidate) -> AttendanceResult:
        course = self._require_course()
        return confirm_attendance(candidate, course, self.students, self.book)

    def handle_trigger(self, trigger: CaptureTrigger, frame: Photo) -> Dict[str, Any]:
        """
        Process a photo taken by the capture loop.

        Auto captures record the best match directly; manual captures
        return the candidate list for the operator.
        """
        if trigger == CaptureTrigger.AUTO:
            return self.mark(frame).to_dict()
        return self.scan(frame).to_dict(self.config.high_confidence)

    # Enrollment

    def enroll(self, request: EnrollmentRequest) -> EnrollmentResult:
        return enroll_student(request, self.face_app, self.students, self.store, self.config)

    def update_student_face(self, row_id: Any, photo: Photo) -> bool:
        return process_existing_student_photo(
            row_id, photo, self.face_app, self.students, self.store, self.config
        )

    def check_photo(self, photo: Photo, crop: bool = False) -> Dict[str, Any]:
        """Run enrollment-grade checks on a photo without saving anything."""
        result = process_face_image(photo, self.face_app, self.config)
        body = result.to_dict()

        if crop and result.face_box is not None:
            image = decode_photo(photo)
            jpeg = crop_face(image, result.face_box) if image is not None else None
            if jpeg is not None:
                body['croppedPhoto'] = 'data:image/jpeg;base64,' + base64.b64encode(jpeg).decode('ascii')

        return body

    def sync_embeddings(self) -> List[str]:
        return sync_local_embeddings(self.store, self.students)

    def clear_local_embeddings(self) -> None:
        self.store.clear()

    def status(self) -> Dict[str, Any]:
        course = self.course
        return {
            'kioskId': self.config.kiosk_id,
            'uptime': format_uptime(time.time() - self.started_at),
            'cameraAttached': self.camera_attached,
            'streaming': self.frames.is_streaming(),
            'capture': self.controller.snapshot(),
            'course': course.to_dict() if course else None,
            'matchThreshold': self.config.match_threshold,
            'vectorSearch': self.config.use_vector_search,
            'localEmbeddingsCount': len(self.store),
            'databaseReachable': self.db.ping(self.config.students_table),
        }
