"""Transformation job state for the phonebooth daemon."""

import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class JobStateEnum(str, Enum):
    """Possible states of the transformation job slot."""

    IDLE = "Idle"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class JobStateManager:
    """Tracks the single transformation job slot.

    Only one job may be RUNNING at a time. ``try_begin`` is the single
    entry point into RUNNING and refuses while a job is already in flight.
    """

    def __init__(self):
        """Initialize state manager with IDLE state."""
        self._state: JobStateEnum = JobStateEnum.IDLE
        self._last_error: Optional[str] = None
        self._observers: List[Callable[[JobStateEnum, Optional[str]], Any]] = []

    @property
    def current_state(self) -> JobStateEnum:
        """Get the current job state."""
        return self._state

    @property
    def last_error(self) -> Optional[str]:
        """Get the error message of the last failed job, if any."""
        return self._last_error

    @property
    def is_running(self) -> bool:
        return self._state == JobStateEnum.RUNNING

    def add_observer(
        self, observer: Callable[[JobStateEnum, Optional[str]], Any]
    ) -> None:
        """Add an observer callback for state changes.

        The callback receives the new state and optional error message.
        """
        self._observers.append(observer)

    def _notify_observers(self) -> None:
        """Notify all observers of the current state."""
        for observer in self._observers:
            try:
                observer(self._state, self._last_error)
            except Exception:
                logger.exception("Job state observer failed")

    def try_begin(self) -> bool:
        """Move into RUNNING unless a job is already running.

        Returns:
            True if the caller now owns the job slot, False otherwise.
        """
        if self._state == JobStateEnum.RUNNING:
            return False

        self._state = JobStateEnum.RUNNING
        self._last_error = None
        self._notify_observers()
        return True

    def succeed(self) -> None:
        """Finish the running job successfully."""
        self._finish(JobStateEnum.SUCCEEDED, None)

    def fail(self, message: str) -> None:
        """Finish the running job with an error message.

        Args:
            message: Human-readable description of the failure.
        """
        self._finish(JobStateEnum.FAILED, message)

    def _finish(self, new_state: JobStateEnum, error: Optional[str]) -> None:
        if self._state != JobStateEnum.RUNNING:
            raise RuntimeError(
                f"Cannot finish a job from state {self._state.value}"
            )
        self._state = new_state
        self._last_error = error
        self._notify_observers()

    def get_status(self) -> Tuple[str, Optional[str]]:
        """Get the current job state and last error message.

        Returns:
            A tuple containing the current state value (as a string) and the last error
            message (if any).
        """
        return self.current_state.value, self.last_error
