import pytest

from attendance_kiosk.config import load_config


@pytest.fixture
def clean_env(monkeypatch):
    for name in ('SUPABASE_URL', 'CAPTURE_MODE', 'MATCH_THRESHOLD', 'MAX_MATCHES',
                 'CANDIDATE_LIMIT', 'COURSE_CODE', 'COURSE_LEVEL', 'USE_VECTOR_SEARCH',
                 'CAMERA_SOURCE'):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = load_config()

    assert config.match_threshold == 0.65
    assert config.max_matches == 5
    assert config.candidate_limit == 50
    assert config.capture_mode == 'manual'
    assert config.camera_source == '0'
    assert config.use_vector_search is False
    assert config.default_course_code is None
    assert config.default_level is None


def test_environment_overrides(clean_env):
    clean_env.setenv('SUPABASE_URL', 'https://demo.supabase.co/')
    clean_env.setenv('CAPTURE_MODE', 'AUTO')
    clean_env.setenv('MATCH_THRESHOLD', '0.7')
    clean_env.setenv('COURSE_CODE', 'CSC101')
    clean_env.setenv('COURSE_LEVEL', '200')
    clean_env.setenv('USE_VECTOR_SEARCH', 'true')

    config = load_config()

    assert config.supabase_url == 'https://demo.supabase.co'
    assert config.capture_mode == 'auto'
    assert config.match_threshold == 0.7
    assert config.default_course_code == 'CSC101'
    assert config.default_level == 200
    assert config.use_vector_search is True


def test_invalid_capture_mode(clean_env):
    clean_env.setenv('CAPTURE_MODE', 'burst')

    with pytest.raises(ValueError):
        load_config()


def test_config_is_immutable(clean_env):
    config = load_config()

    with pytest.raises(AttributeError):
        config.match_threshold = 0.1
