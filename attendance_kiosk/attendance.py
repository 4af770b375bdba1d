"""
Attendance module.

Scans a captured photo against enrolled students and records attendance:
- find_matches: ranked candidates for the operator to confirm
- mark_attendance: record the best match directly
- confirm_attendance: record a candidate picked from the list

A student is marked at most once per course per day.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import Config
from .database import DatabaseError, SupabaseClient
from .logging_config import get_logger
from .recognition.extraction import Photo, extract_face_descriptor
from .recognition.matching import (
    MatchCandidate,
    confidence_label,
    fit_embedding_dimensions,
    rank_matches,
)
from .students import StudentRepository

logger = get_logger(__name__)

ATTENDANCE_SCORE = 2.00


@dataclass(frozen=True)
class CourseSession:
    """Course the kiosk is currently taking attendance for."""

    course_code: str
    course_title: str
    level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'course_code': self.course_code,
            'course_title': self.course_title,
            'level': self.level,
        }


@dataclass
class AttendanceResult:
    success: bool
    error: Optional[str] = None
    student: Optional[Dict[str, str]] = None
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'error': self.error,
            'student': self.student,
            'confidence': self.confidence,
        }


@dataclass
class ScanResult:
    """Candidates found for a captured photo."""

    face_detected: bool
    matches: List[MatchCandidate] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self, high_confidence: float = 0.8) -> Dict[str, Any]:
        return {
            'success': bool(self.matches),
            'faceDetected': self.face_detected,
            'error': self.error,
            'matches': [
                {
                    **match.to_dict(),
                    'rank': 'Best Match' if index == 0 else 'Alternative',
                    'status': confidence_label(match.confidence, high_confidence),
                }
                for index, match in enumerate(self.matches)
            ],
        }


def _local_now() -> datetime:
    return datetime.now().astimezone()


class AttendanceBook:
    """Attendance rows in the attendance table."""

    def __init__(self, db: SupabaseClient, config: Config):
        self.db = db
        self.table = config.attendance_table

    def has_attendance(self, student_id: str, course_code: str, day: str) -> bool:
        """
        Check for an existing row.

        Args:
            student_id: Student identifier
            course_code: Course code
            day: Date as YYYY-MM-DD
        """
        row = self.db.select_one(
            self.table,
            'id',
            filters={
                'student_id': f'eq.{student_id}',
                'course_code': f'eq.{course_code}',
                'attendance_date': f'eq.{day}',
            },
        )
        return row is not None

    def record(
        self,
        student: MatchCandidate,
        course: CourseSession,
        now: datetime
    ) -> bool:
        """
        Insert an attendance row.

        Returns:
            True if inserted, False if the row already existed

        Raises:
            DatabaseError: On any other database failure
        """
        timestamp = now.isoformat()
        row = {
            'student_id': student.student_id,
            'student_name': student.name,
            'matric_number': student.matric_number,
            'course_code': course.course_code,
            'course_title': course.course_title,
            'level': course.level,
            'attendance_date': now.date().isoformat(),
            'check_in_time': timestamp,
            'status': 'present',
            'verification_method': 'face_recognition',
            'confidence_score': student.confidence,
            'similarity_score': student.confidence,
            'score': ATTENDANCE_SCORE,
            'created_at': timestamp,
        }

        try:
            self.db.insert(self.table, [row])
        except DatabaseError as e:
            # Concurrent kiosks can pass the existence check together
            if e.is_conflict:
                logger.warning(f'Attendance for {student.student_id} inserted concurrently')
                return False
            raise

        return True


def find_matches(
    photo: Photo,
    face_app: Any,
    students: StudentRepository,
    config: Config
) -> ScanResult:
    """
    Find enrolled students resembling the face in a photo.

    Args:
        photo: Captured photo
        face_app: InsightFace FaceAnalysis instance
        students: Student repository
        config: Service configuration

    Returns:
        ScanResult with at most config.max_matches candidates, best first
    """
    descriptor = extract_face_descriptor(photo, face_app, config)
    if descriptor is None:
        return ScanResult(
            face_detected=False,
            error='No face detected in the image. Please try again.'
        )

    candidates = students.fetch_match_candidates()
    if not candidates:
        logger.info('No students with face embeddings found')

    matches = rank_matches(
        descriptor, candidates, config.match_threshold, config.max_matches
    )
    logger.info(f'Found {len(matches)} match(es) among {len(candidates)} students')

    if not matches:
        return ScanResult(
            face_detected=True,
            error='No matching student found. Try again or enroll the student.'
        )

    return ScanResult(face_detected=True, matches=matches)


def _vector_search(descriptor, students: StudentRepository, config: Config) -> Optional[MatchCandidate]:
    rows = students.find_similar(
        fit_embedding_dimensions(descriptor, config.vector_dimensions),
        config.match_threshold,
        config.vector_max_results,
    )
    if not rows:
        return None

    best = rows[0]
    return MatchCandidate(
        id=best.get('id'),
        student_id=best.get('student_id') or '',
        name=best.get('name') or '',
        matric_number=best.get('matric_number') or '',
        confidence=float(best.get('similarity_score', 0.0)),
    )


def _search_best(descriptor, students: StudentRepository, config: Config) -> Optional[MatchCandidate]:
    if config.use_vector_search:
        try:
            return _vector_search(descriptor, students, config)
        except DatabaseError as e:
            logger.warning(f'Vector search failed, trying manual search: {e}')

    matches = rank_matches(
        descriptor, students.fetch_match_candidates(), config.match_threshold, 1
    )
    return matches[0] if matches else None


def confirm_attendance(
    candidate: MatchCandidate,
    course: CourseSession,
    students: StudentRepository,
    book: AttendanceBook,
    now: Optional[datetime] = None
) -> AttendanceResult:
    """
    Record attendance for a chosen student.

    Args:
        candidate: Student to mark
        course: Current course session
        students: Student repository
        book: Attendance rows
        now: Check-in time (defaults to local now)

    Returns:
        AttendanceResult
    """
    now = now or _local_now()
    student = {'name': candidate.name, 'matric_number': candidate.matric_number}

    if book.has_attendance(candidate.student_id, course.course_code, now.date().isoformat()):
        return AttendanceResult(
            success=False,
            error='Attendance already marked today',
            student=student,
        )

    if not book.record(candidate, course, now):
        return AttendanceResult(
            success=False,
            error='Attendance already marked today',
            student=student,
        )

    try:
        students.touch_last_face_scan(candidate.student_id)
    except DatabaseError as e:
        logger.warning(f'Failed to update last face scan for {candidate.student_id}: {e}')

    logger.info(
        f'✅ Attendance marked for {candidate.name} in {course.course_code} '
        f'(confidence: {candidate.confidence:.3f})'
    )

    return AttendanceResult(success=True, student=student, confidence=candidate.confidence)


def mark_attendance(
    photo: Photo,
    course: CourseSession,
    face_app: Any,
    students: StudentRepository,
    book: AttendanceBook,
    config: Config,
    now: Optional[datetime] = None
) -> AttendanceResult:
    """
    Identify the student in a photo and record attendance.

    Args:
        photo: Captured photo
        course: Current course session
        face_app: InsightFace FaceAnalysis instance
        students: Student repository
        book: Attendance rows
        config: Service configuration
        now: Check-in time (defaults to local now)

    Returns:
        AttendanceResult
    """
    descriptor = extract_face_descriptor(photo, face_app, config)
    if descriptor is None:
        return AttendanceResult(success=False, error='No face detected in photo')

    best = _search_best(descriptor, students, config)
    if best is None:
        return AttendanceResult(success=False, error='No matching student found')

    logger.info(f'Best match: {best.name} ({best.confidence:.3f})')
    return confirm_attendance(best, course, students, book, now)
