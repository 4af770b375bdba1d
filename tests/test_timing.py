import pytest

from attendance_kiosk.utils.timing import format_uptime, retry_with_backoff


@pytest.mark.parametrize('seconds, expected', [
    (0, '0s'),
    (59.9, '59s'),
    (3600, '1h 0s'),
    (90061, '1d 1h 1m 1s'),
])
def test_format_uptime(seconds, expected):
    assert format_uptime(seconds) == expected


def test_retry_succeeds_after_failures():
    attempts = []
    waits = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError('down')
        return 'ok'

    assert retry_with_backoff(flaky, sleep=waits.append) == 'ok'
    assert waits == [1.0, 2.0]


def test_retry_raises_last_error():
    def broken():
        raise ConnectionError('down')

    with pytest.raises(ConnectionError):
        retry_with_backoff(broken, max_attempts=2, sleep=lambda s: None)


def test_retry_only_on_listed_errors():
    calls = []

    def wrong_type():
        calls.append(1)
        raise KeyError('nope')

    with pytest.raises(KeyError):
        retry_with_backoff(wrong_type, retry_on=(ConnectionError,), sleep=lambda s: None)

    assert len(calls) == 1
