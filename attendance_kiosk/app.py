"""
Flask application for the kiosk HTTP API.

Provides:
- GET  /health: Service health check
- GET  /video_feed: MJPEG preview of the kiosk camera
- GET  /api/status: Kiosk status
- GET/POST /api/session: Current course session
- POST /api/camera: Enable or disable the kiosk camera
- POST /api/capture/mode: Switch manual / auto capture
- POST /api/capture: Manual capture from the kiosk camera
- GET  /api/capture/latest: Result of the last camera capture
- POST /api/attendance/scan: Candidate matches for an uploaded photo
- POST /api/attendance/mark: Mark attendance for a chosen candidate
- POST /api/attendance/auto: Mark attendance for the best match of a photo
- POST /api/faces/check: Enrollment-grade photo check
- POST /api/enroll: Enroll a new student
- POST /api/students/<id>/face: Store a new embedding for a student
- POST /api/embeddings/sync: Push local embeddings to the database
- DELETE /api/embeddings/local: Clear local embeddings
"""

from typing import Any, Dict

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from . import streaming
from .attendance import CourseSession
from .database import DatabaseError
from .enrollment import EnrollmentRequest
from .kiosk import Kiosk, NoCourseSessionError
from .logging_config import get_logger
from .recognition.matching import MatchCandidate
from .students import StudentNotFoundError

logger = get_logger(__name__)


def _error(message: str, status: int):
    return jsonify({'success': False, 'error': message}), status


def _json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _photo_from_request():
    """
    Read the photo from a multipart upload or the JSON 'photo' field.

    Raises:
        ValueError: If no photo was sent
    """
    upload = request.files.get('photo')
    if upload is not None:
        return upload.read()

    photo = _json_body().get('photo')
    if not photo:
        raise ValueError('Missing photo')
    return photo


def create_app(kiosk: Kiosk) -> Flask:
    """
    Create and configure Flask application.

    Args:
        kiosk: Kiosk instance served by the API

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    CORS(app)
    config = kiosk.config

    @app.errorhandler(DatabaseError)
    def handle_database_error(e: DatabaseError):
        logger.error(f'Database error: {e}')
        return _error(f'Database error: {e}', 502)

    @app.errorhandler(NoCourseSessionError)
    def handle_no_course(e: NoCourseSessionError):
        return _error(str(e), 409)

    @app.errorhandler(StudentNotFoundError)
    def handle_not_found(e: StudentNotFoundError):
        return _error(str(e), 404)

    @app.errorhandler(ValueError)
    def handle_bad_request(e: ValueError):
        return _error(str(e), 400)

    @app.route('/health')
    def health():
        return jsonify({
            'status': 'ok',
            'streaming': kiosk.frames.is_streaming(),
            'kioskId': config.kiosk_id,
        })

    @app.route('/video_feed')
    def video_feed():
        return Response(
            streaming.generate_mjpeg_frames(kiosk.frames),
            mimetype='multipart/x-mixed-replace; boundary=frame'
        )

    @app.route('/api/status')
    def status():
        return jsonify(kiosk.status())

    @app.route('/api/session', methods=['GET'])
    def get_session():
        course = kiosk.course
        return jsonify({'course': course.to_dict() if course else None})

    @app.route('/api/session', methods=['POST'])
    def set_session():
        body = _json_body()
        course_code = (body.get('course_code') or '').strip()
        if not course_code:
            raise ValueError('Missing course_code')

        level = body.get('level')
        course = CourseSession(
            course_code=course_code,
            course_title=body.get('course_title') or course_code,
            level=int(level) if level not in (None, '') else None,
        )
        kiosk.set_course(course)
        return jsonify({'course': course.to_dict()})

    @app.route('/api/camera', methods=['POST'])
    def set_camera():
        if _json_body().get('active', True):
            kiosk.controller.enable()
        else:
            kiosk.controller.disable()
        return jsonify(kiosk.controller.snapshot())

    @app.route('/api/capture/mode', methods=['POST'])
    def set_capture_mode():
        kiosk.controller.set_mode(_json_body().get('mode', ''))
        return jsonify(kiosk.controller.snapshot())

    @app.route('/api/capture', methods=['POST'])
    def capture():
        if not kiosk.camera_attached:
            return _error('Kiosk camera not attached', 409)
        if not kiosk.controller.request_capture():
            return _error('Camera busy', 409)
        return jsonify({'success': True, 'state': 'capturing'}), 202

    @app.route('/api/capture/latest')
    def capture_latest():
        return jsonify(kiosk.controller.snapshot())

    @app.route('/api/attendance/scan', methods=['POST'])
    def attendance_scan():
        result = kiosk.scan(_photo_from_request())
        return jsonify(result.to_dict(config.high_confidence))

    @app.route('/api/attendance/mark', methods=['POST'])
    def attendance_mark():
        body = _json_body()
        if not body.get('student_id'):
            raise ValueError('Missing student_id')

        candidate = MatchCandidate(
            id=body.get('id'),
            student_id=str(body['student_id']),
            name=body.get('name') or '',
            matric_number=body.get('matric_number') or '',
            confidence=float(body.get('confidence') or 0.0),
        )
        return jsonify(kiosk.confirm(candidate).to_dict())

    @app.route('/api/attendance/auto', methods=['POST'])
    def attendance_auto():
        return jsonify(kiosk.mark(_photo_from_request()).to_dict())

    @app.route('/api/faces/check', methods=['POST'])
    def faces_check():
        crop = bool(_json_body().get('crop') or request.form.get('crop'))
        return jsonify(kiosk.check_photo(_photo_from_request(), crop=crop))

    @app.route('/api/enroll', methods=['POST'])
    def enroll():
        body = dict(_json_body())
        upload = request.files.get('photo')
        if upload is not None:
            body.update(request.form.to_dict())
            body['photo'] = upload.read()

        result = kiosk.enroll(EnrollmentRequest.from_dict(body))
        return jsonify(result.to_dict()), 201 if result.success else 200

    @app.route('/api/students/<row_id>/face', methods=['POST'])
    def update_student_face(row_id: str):
        stored = kiosk.update_student_face(row_id, _photo_from_request())
        if not stored:
            return _error('No face detected in photo', 422)
        return jsonify({'success': True})

    @app.route('/api/embeddings/sync', methods=['POST'])
    def sync_embeddings():
        synced = kiosk.sync_embeddings()
        return jsonify({'success': True, 'synced': synced})

    @app.route('/api/embeddings/local', methods=['DELETE'])
    def clear_embeddings():
        kiosk.clear_local_embeddings()
        return jsonify({'success': True})

    return app
