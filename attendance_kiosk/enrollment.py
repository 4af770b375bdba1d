"""
Enrollment module.

Registers new students with their face embedding and maintains embeddings
for existing students.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

from .config import Config
from .database import DatabaseError
from .logging_config import get_logger
from .recognition.extraction import Photo, extract_face_descriptor, process_face_image
from .students import StudentNotFoundError, StudentRepository, utc_now_iso
from .utils.cache import LocalEmbeddingStore

logger = get_logger(__name__)

REQUIRED_FIELDS = ('student_id', 'name', 'gender', 'program_name', 'program_code', 'level', 'photo')


@dataclass
class EnrollmentRequest:
    student_id: str  # matric number
    name: str
    gender: str
    program_name: str
    program_code: str
    level: int
    photo: Photo
    program_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnrollmentRequest':
        """
        Build a request from a JSON body.

        Raises:
            ValueError: If a required field is missing or level is not a number
        """
        missing = [name for name in REQUIRED_FIELDS if data.get(name) in (None, '')]
        if missing:
            raise ValueError(f"Missing fields: {', '.join(missing)}")

        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values['student_id'] = str(values['student_id']).strip()
        values['level'] = int(values['level'])
        return cls(**values)


@dataclass
class EnrollmentResult:
    success: bool
    error: Optional[str] = None
    student: Optional[Dict[str, Any]] = None
    face_detected: bool = False
    embedding_dimensions: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'error': self.error,
            'student': self.student,
            'faceDetected': self.face_detected,
            'embeddingDimensions': self.embedding_dimensions,
        }


def enroll_student(
    request: EnrollmentRequest,
    face_app: Any,
    students: StudentRepository,
    store: LocalEmbeddingStore,
    config: Config
) -> EnrollmentResult:
    """
    Enroll a new student.

    A photo without a detectable face still enrolls the student, without
    face data. A photo with several faces or a poor-quality face is
    rejected so it can be retaken.

    Args:
        request: Enrollment details and photo
        face_app: InsightFace FaceAnalysis instance
        students: Student repository
        store: Local embeddings store
        config: Service configuration

    Returns:
        EnrollmentResult

    Raises:
        DatabaseError: If the student lookup or insert fails
    """
    logger.info(f'Starting enrollment for {request.student_id}...')

    if students.find_by_matric(request.student_id):
        return EnrollmentResult(
            success=False,
            error=f'Student with matric number {request.student_id} already exists'
        )

    face = process_face_image(request.photo, face_app, config)

    if not face.success and face.face_detected:
        return EnrollmentResult(success=False, error=face.error, face_detected=True)

    if not face.face_detected:
        logger.warning(f'No face detected for {request.student_id}. Proceeding without face data...')

    student_data = {
        'student_id': request.student_id,
        'name': request.name,
        'matric_number': request.student_id,
        'gender': request.gender,
        'program_name': request.program_name,
        'program_code': request.program_code,
        'level': request.level,
        'enrollment_status': 'enrolled',
        'enrollment_date': utc_now_iso(),
    }
    if request.program_id:
        student_data['program_id'] = request.program_id

    new_student = students.create(student_data)
    logger.info(f"Student {request.student_id} saved (id={new_student.get('id')})")

    embedding_saved = False
    if face.success:
        # Local copy first so a failed remote write can be synced later
        try:
            store.save(request.student_id, face.embedding)
        except OSError as e:
            logger.warning(f'Failed to store face embedding locally for {request.student_id}: {e}')

        try:
            students.update_face_embedding(new_student['id'], face.embedding)
            embedding_saved = True
        except DatabaseError as e:
            logger.warning(f'Failed to save face embedding for {request.student_id}: {e}')

    return EnrollmentResult(
        success=True,
        student={
            'id': new_student.get('id'),
            'student_id': new_student.get('student_id'),
            'name': new_student.get('name'),
            'matric_number': new_student.get('matric_number'),
            'gender': new_student.get('gender'),
            'program_name': new_student.get('program_name'),
            'program_code': new_student.get('program_code'),
            'level': new_student.get('level'),
            'enrollment_status': new_student.get('enrollment_status'),
            'enrollment_date': new_student.get('enrollment_date'),
            'has_face_embedding': embedding_saved,
        },
        face_detected=face.face_detected,
        embedding_dimensions=len(face.embedding) if face.embedding is not None else None,
    )


def process_existing_student_photo(
    row_id: Any,
    photo: Photo,
    face_app: Any,
    students: StudentRepository,
    store: LocalEmbeddingStore,
    config: Config
) -> bool:
    """
    Extract and store a face embedding for an existing student.

    Returns:
        True if an embedding was stored, False if no face was found

    Raises:
        StudentNotFoundError: If the student does not exist
        DatabaseError: If the database update fails
    """
    student = students.get(row_id)
    if student is None:
        raise StudentNotFoundError(f'Student {row_id} not found')

    descriptor = extract_face_descriptor(photo, face_app, config)
    if descriptor is None:
        return False

    students.update_face_embedding(row_id, descriptor)
    store.save(student.get('student_id') or str(row_id), descriptor)
    return True


def sync_local_embeddings(store: LocalEmbeddingStore, students: StudentRepository) -> List[str]:
    """
    Push locally stored embeddings to the database.

    Returns:
        Student ids whose embedding was synced
    """
    synced: List[str] = []

    for entry in store.load_all():
        student_id = entry['student_id']
        try:
            students.update_face_embedding_by_student_id(student_id, entry['descriptor'])
            synced.append(student_id)
        except DatabaseError as e:
            logger.error(f'Failed to sync embedding for student {student_id}: {e}')

    logger.info(f'Synced {len(synced)} local embeddings')
    return synced
