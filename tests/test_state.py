"""Tests for job state management."""

from unittest.mock import Mock

import pytest

from phonebooth.state import JobStateEnum, JobStateManager


@pytest.fixture
def state_manager():
    """Create a state manager instance."""
    return JobStateManager()


def test_initial_state(state_manager):
    """Test the job slot starts idle without error."""
    assert state_manager.current_state == JobStateEnum.IDLE
    assert state_manager.last_error is None
    assert state_manager.get_status() == ("Idle", None)


def test_try_begin_claims_slot_once(state_manager):
    """Test only one job can be running."""
    assert state_manager.try_begin() is True
    assert state_manager.is_running
    assert state_manager.try_begin() is False
    assert state_manager.current_state == JobStateEnum.RUNNING


def test_succeed_releases_slot(state_manager):
    """Test success returns the slot for a new job."""
    state_manager.try_begin()
    state_manager.succeed()

    assert state_manager.current_state == JobStateEnum.SUCCEEDED
    assert state_manager.try_begin() is True


def test_fail_records_error(state_manager):
    """Test failure keeps the message until the next job starts."""
    state_manager.try_begin()
    state_manager.fail("bad codec")

    assert state_manager.get_status() == ("Failed", "bad codec")

    state_manager.try_begin()
    assert state_manager.last_error is None


def test_finish_without_running_job(state_manager):
    """Test finishing a job that never started is a programming error."""
    with pytest.raises(RuntimeError):
        state_manager.succeed()
    with pytest.raises(RuntimeError):
        state_manager.fail("nope")


def test_observers_notified(state_manager):
    """Test observers get every transition exactly once."""
    observer = Mock()
    state_manager.add_observer(observer)

    state_manager.try_begin()
    state_manager.try_begin()  # rejected, no notification
    state_manager.fail("boom")

    assert observer.call_count == 2
    observer.assert_any_call(JobStateEnum.RUNNING, None)
    observer.assert_called_with(JobStateEnum.FAILED, "boom")


def test_observer_error_does_not_break_state(state_manager):
    """Test a failing observer doesn't stop the transition."""
    state_manager.add_observer(Mock(side_effect=RuntimeError("observer")))
    second = Mock()
    state_manager.add_observer(second)

    assert state_manager.try_begin() is True
    second.assert_called_once_with(JobStateEnum.RUNNING, None)
