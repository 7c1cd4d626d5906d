"""Tests for time-bounded calls."""

import threading

import pytest

from src.pipeline.timeouts import StageTimeoutError, call_with_timeout


def test_call_returns_result():
    """Test a fast call returns its result."""
    assert call_with_timeout(lambda a, b=0: a + b, 1.0, 2, b=3, stage="add") == 5


def test_call_propagates_errors():
    """Test exceptions from the call are raised unchanged."""
    def fail():
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        call_with_timeout(fail, 1.0)


def test_slow_call_times_out():
    """Test a call that outlives its timeout raises StageTimeoutError."""
    release = threading.Event()

    try:
        with pytest.raises(StageTimeoutError) as exc_info:
            call_with_timeout(release.wait, 0.05, 5.0, stage="ball detection")
    finally:
        release.set()

    assert exc_info.value.stage == "ball detection"
    assert exc_info.value.timeout == 0.05
    assert isinstance(exc_info.value, TimeoutError)


def test_no_timeout_waits():
    """Test a None timeout waits for completion."""
    assert call_with_timeout(lambda: "done", None) == "done"
