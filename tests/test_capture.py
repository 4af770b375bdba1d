import dataclasses
import inspect
import warnings

import pytest

from attendance_kiosk import capture
from attendance_kiosk.capture import CaptureController, CaptureState, CaptureTrigger


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manual(config, clock):
    return CaptureController(config, clock=clock)


@pytest.fixture
def auto(config, clock):
    return CaptureController(dataclasses.replace(config, capture_mode='auto'), clock=clock)


def test_starts_idle_in_configured_mode(manual):
    assert manual.state == CaptureState.IDLE
    assert manual.snapshot()['mode'] == 'manual'
    assert manual.tick() is None


def test_manual_capture_fires_immediately(manual):
    assert manual.request_capture()

    assert manual.tick() == CaptureTrigger.MANUAL
    assert manual.state == CaptureState.PROCESSING
    assert manual.tick() is None


def test_manual_request_rejected_while_busy(manual):
    manual.request_capture()
    manual.tick()

    assert not manual.request_capture()


def test_result_is_held_then_returns_to_idle(manual, clock):
    manual.request_capture()
    manual.tick()
    clock.now = 1.0
    manual.finish({'success': True})

    assert manual.state == CaptureState.RESULT
    assert manual.last_result == {'success': True, 'trigger': 'manual'}
    assert not manual.request_capture()

    clock.now = 3.9
    assert manual.tick() is None
    assert manual.state == CaptureState.RESULT

    clock.now = 4.0
    assert manual.tick() is None
    assert manual.state == CaptureState.IDLE
    assert manual.request_capture()


def test_auto_capture_counts_down_then_fires(auto, clock):
    clock.now = 4.9
    assert auto.tick() is None
    assert auto.state == CaptureState.IDLE

    clock.now = 5.0
    assert auto.tick() is None
    assert auto.state == CaptureState.COUNTDOWN
    assert auto.countdown_remaining() == 1

    clock.now = 6.0
    assert auto.tick() == CaptureTrigger.AUTO
    assert auto.state == CaptureState.PROCESSING
    assert auto.countdown_remaining() is None


def test_auto_capture_waits_for_processing_and_hold(auto, clock):
    clock.now = 5.0
    auto.tick()
    clock.now = 6.0
    auto.tick()

    clock.now = 20.0
    assert auto.tick() is None

    auto.fail('Database error')
    assert auto.last_result == {'success': False, 'error': 'Database error', 'trigger': 'auto'}

    clock.now = 22.9
    assert auto.tick() is None

    # Hold ends at 23.0, the next cycle starts from there
    clock.now = 23.0
    assert auto.tick() is None
    clock.now = 28.0
    auto.tick()
    assert auto.state == CaptureState.COUNTDOWN


def test_switching_mode_restarts_interval(manual, clock):
    clock.now = 10.0
    manual.set_mode('auto')

    clock.now = 14.0
    assert manual.tick() is None
    assert manual.state == CaptureState.IDLE

    clock.now = 15.0
    manual.tick()
    assert manual.state == CaptureState.COUNTDOWN


def test_switching_to_manual_cancels_countdown(auto, clock):
    clock.now = 5.0
    auto.tick()

    auto.set_mode('manual')

    assert auto.state == CaptureState.IDLE
    clock.now = 100.0
    assert auto.tick() is None


def test_unknown_mode_is_rejected(manual):
    with pytest.raises(ValueError):
        manual.set_mode('burst')


def test_disable_discards_pending_capture(manual):
    manual.request_capture()
    manual.disable()

    assert not manual.enabled
    assert manual.tick() is None
    assert not manual.request_capture()

    manual.enable()
    assert manual.state == CaptureState.IDLE
    assert manual.tick() is None


def test_result_after_disable_keeps_camera_off(manual):
    manual.request_capture()
    manual.tick()
    manual.disable()

    manual.finish({'success': True})

    assert manual.state == CaptureState.DISABLED
    assert manual.last_result['success']


def test_snapshot(auto, clock):
    clock.now = 5.0
    auto.tick()

    snapshot = auto.snapshot()

    assert snapshot['state'] == 'countdown'
    assert snapshot['mode'] == 'auto'
    assert snapshot['countdown'] == 1
    assert snapshot['captureInterval'] == 5.0
    assert snapshot['lastResult'] is None


def test_module_source_compiles_without_warnings():
    source = inspect.getsource(capture)

    with warnings.catch_warnings():
        warnings.simplefilter('error')
        compile(source, capture.__file__, 'exec')
