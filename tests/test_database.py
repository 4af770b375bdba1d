import json

import pytest
import requests

from attendance_kiosk.database import DatabaseError, SupabaseClient


def _response(status=200, body=None):
    response = requests.Response()
    response.status_code = status
    response._content = b'' if body is None else json.dumps(body).encode()
    return response


class RecordingSession:
    """requests.Session stand-in that records calls and replays responses."""

    def __init__(self, *responses, error=None):
        self.headers = {}
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({'method': method, 'url': url, 'timeout': timeout, **kwargs})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def _client(session):
    return SupabaseClient('https://example.supabase.co/', 'secret-key', timeout=3, session=session)


def test_auth_headers_are_set():
    session = RecordingSession()
    _client(session)

    assert session.headers['apikey'] == 'secret-key'
    assert session.headers['Authorization'] == 'Bearer secret-key'


def test_select_builds_postgrest_query():
    session = RecordingSession(_response(body=[{'id': 1}]))

    rows = _client(session).select(
        'students', 'id, name',
        filters={'enrollment_status': 'eq.enrolled', 'face_embedding': 'not.is.null'},
        limit=50,
        order='name.asc',
    )

    call = session.calls[0]
    assert rows == [{'id': 1}]
    assert call['method'] == 'GET'
    assert call['url'] == 'https://example.supabase.co/rest/v1/students'
    assert call['timeout'] == 3
    assert call['params'] == [
        ('enrollment_status', 'eq.enrolled'),
        ('face_embedding', 'not.is.null'),
        ('select', 'id, name'),
        ('limit', '50'),
        ('order', 'name.asc'),
    ]


def test_select_one_returns_first_row_or_none():
    session = RecordingSession(_response(body=[{'id': 7}]), _response(body=[]))
    client = _client(session)

    assert client.select_one('students', filters={'id': 'eq.7'}) == {'id': 7}
    assert client.select_one('students', filters={'id': 'eq.8'}) is None
    assert ('limit', '1') in session.calls[0]['params']


def test_insert_requests_representation():
    session = RecordingSession(_response(201, [{'id': 5, 'name': 'Ada'}]))

    rows = _client(session).insert('students', [{'name': 'Ada'}])

    call = session.calls[0]
    assert rows == [{'id': 5, 'name': 'Ada'}]
    assert call['method'] == 'POST'
    assert call['json'] == [{'name': 'Ada'}]
    assert call['headers'] == {'Prefer': 'return=representation'}


def test_update_sends_filters_and_values():
    session = RecordingSession(_response(body=[]))

    _client(session).update('students', {'last_face_scan': 'now'}, {'student_id': 'eq.S1'})

    call = session.calls[0]
    assert call['method'] == 'PATCH'
    assert call['params'] == [('student_id', 'eq.S1')]
    assert call['json'] == {'last_face_scan': 'now'}


def test_update_without_filters_is_refused():
    with pytest.raises(ValueError):
        _client(RecordingSession()).update('students', {'is_active': False}, {})


def test_rpc_posts_parameters():
    session = RecordingSession(_response(body=[{'student_id': 'S1'}]))

    result = _client(session).rpc('find_similar_faces', {'max_results': 3})

    assert result == [{'student_id': 'S1'}]
    assert session.calls[0]['url'].endswith('/rest/v1/rpc/find_similar_faces')


def test_empty_body_returns_none():
    session = RecordingSession(_response(204))
    assert _client(session).update('students', {'a': 1}, {'id': 'eq.1'}) is None


def test_error_response_raises_with_code():
    session = RecordingSession(_response(409, {'message': 'duplicate key value', 'code': '23505'}))

    with pytest.raises(DatabaseError) as excinfo:
        _client(session).insert('student_attendance', [{}])

    assert excinfo.value.status == 409
    assert excinfo.value.code == '23505'
    assert excinfo.value.is_conflict
    assert 'duplicate key value' in str(excinfo.value)


def test_server_error_is_not_a_conflict():
    session = RecordingSession(_response(500, {'message': 'boom'}))

    with pytest.raises(DatabaseError) as excinfo:
        _client(session).select('students')

    assert not excinfo.value.is_conflict


def test_transport_errors_become_database_errors():
    session = RecordingSession(error=requests.exceptions.ConnectionError('refused'))

    with pytest.raises(DatabaseError):
        _client(session).select('students')


def test_timeout_becomes_database_error():
    session = RecordingSession(error=requests.exceptions.Timeout())

    with pytest.raises(DatabaseError, match='Timeout'):
        _client(session).select('students')


def test_ping():
    assert _client(RecordingSession(_response(body=[]))).ping('students')
    assert not _client(RecordingSession(_response(500, {'message': 'down'}))).ping('students')
