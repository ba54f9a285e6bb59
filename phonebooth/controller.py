"""Player controller: owns the playlist, transport and transformation job."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Optional

from .config import AppConfig
from .dispatcher import dispatch
from .ipc_models import PlayerStatusModel, TrackModel
from .library import (
    FileInfo,
    LibraryError,
    PathLike,
    find_audio_files,
    get_file_info,
    validate_audio_file,
)
from .playlist import Playlist, Track, Transport
from .state import JobStateManager

logger = logging.getLogger(__name__)

READY_MESSAGE = "Ready"
SELECT_TRACK_MESSAGE = "Please select a track first"
EMPTY_PLAYLIST_MESSAGE = "Add files to playlist first"
TRANSFORMING_MESSAGE = "Transforming..."
TRANSFORM_DONE_MESSAGE = "Transformation complete"
UNEXPECTED_ERROR_MESSAGE = "Error during transformation"


class SubmitStatus(str, Enum):
    """Outcome of a transform request."""

    ACCEPTED = "accepted"
    NO_TRACK_SELECTED = "no_track_selected"
    ALREADY_RUNNING = "already_running"


class PlayerController:
    """Single owner of the player's mutable state.

    Every change goes through one of the public methods below, and every
    method that changes something notifies observers with a fresh
    ``PlayerStatusModel`` snapshot. All methods are meant to be called from
    the event loop thread, which is what makes the job slot safe without a
    lock: ``submit_transform`` claims it synchronously before any await.
    """

    def __init__(
        self, config: AppConfig, job_state: Optional[JobStateManager] = None
    ):
        """Initialize the controller.

        Args:
            config: Application configuration.
            job_state: Job state manager; a fresh one is created if omitted.
        """
        self.config = config
        self.playlist = Playlist()
        self.transport = Transport(volume=config.player.default_volume)
        self.job_state = job_state or JobStateManager()

        self._message: str = READY_MESSAGE
        self._message_reset: Optional[asyncio.TimerHandle] = None
        self._job_task: Optional[asyncio.Task] = None
        self._observers: List[Callable[[PlayerStatusModel], Any]] = []

    # Observers and status

    def add_observer(self, observer: Callable[[PlayerStatusModel], Any]) -> None:
        """Add a callback that receives a status snapshot after each change."""
        self._observers.append(observer)

    def _notify(self) -> None:
        if not self._observers:
            return
        status = self.snapshot()
        for observer in self._observers:
            try:
                observer(status)
            except Exception:
                logger.exception("Player state observer failed")

    @property
    def message(self) -> str:
        return self._message

    def _set_message(self, message: str, transient: bool = False) -> None:
        """Set the status line, optionally reverting to 'Ready' later."""
        if self._message_reset:
            self._message_reset.cancel()
            self._message_reset = None

        self._message = message

        delay = self.config.daemon.status_reset_s
        if not transient or delay <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # No loop (plain sync use), keep the message
        self._message_reset = loop.call_later(delay, self._reset_message)

    def _reset_message(self) -> None:
        self._message_reset = None
        self._message = READY_MESSAGE
        self._notify()

    def snapshot(self) -> PlayerStatusModel:
        """Build a status snapshot for the front end."""
        job_state, last_error = self.job_state.get_status()
        return PlayerStatusModel(
            tracks=[
                TrackModel(name=t.name, path=str(t.path), size=t.size)
                for t in self.playlist
            ],
            current_index=self.playlist.current_index,
            playback=self.transport.state.value,
            volume=self.transport.volume,
            position=self.transport.position,
            job_state=job_state,
            last_error=last_error,
            message=self._message,
        )

    # Imports

    def _import_file(self, path: PathLike) -> Optional[Track]:
        selected = validate_audio_file(path, self.config.library.extensions)
        if selected in self.playlist:
            logger.debug(f"Already in playlist: {selected}")
            return None
        track = Track.from_file_info(get_file_info(selected))
        self.playlist.add(track)
        logger.info(f"Added to playlist: {track.path}")
        return track

    def add_file(self, path: PathLike) -> Optional[Track]:
        """Import one audio file.

        Returns:
            The new track, or None if the path was already in the playlist.

        Raises:
            LibraryError: If the file is missing or not a supported audio file.
        """
        track = self._import_file(path)
        if track:
            self._notify()
        return track

    def add_folder(self, folder: PathLike) -> List[Track]:
        """Import every audio file below a folder.

        Files that vanish or can't be read mid-import are skipped.

        Raises:
            LibraryError: If the folder doesn't exist.
        """
        files = find_audio_files(folder, self.config.library.extensions)
        added: List[Track] = []
        for file_path in files:
            try:
                track = self._import_file(file_path)
            except LibraryError as e:
                logger.warning(f"Skipping {file_path}: {e}")
                continue
            if track:
                added.append(track)

        if files:
            self._set_message(f"Added {len(files)} files", transient=True)
            self._notify()
        return added

    def file_info(self, path: PathLike) -> FileInfo:
        """Return display metadata of a file.

        Args:
            path: File to describe.

        Returns:
            FileInfo with name, size and path.

        Raises:
            LibraryError: If the file can't be stat'ed.
        """
        return get_file_info(path)

    def clear_playlist(self) -> None:
        self.transport.stop()
        self.playlist.clear()
        self._set_message("Playlist cleared", transient=True)
        self._notify()

    # Transport

    def select(self, index: int) -> Track:
        """Select a track and start playing it.

        Raises:
            PlaylistError: If the index is out of range.
        """
        track = self.playlist.select(index)
        self.transport.load()
        self._start_playback()
        return track

    def _start_playback(self) -> None:
        self.transport.play()
        self._set_message("Playing")
        self._notify()

    def play(self) -> bool:
        """Start playback, selecting the first track if none is selected.

        Returns:
            False if the playlist is empty.
        """
        if not len(self.playlist):
            self._set_message(EMPTY_PLAYLIST_MESSAGE, transient=True)
            self._notify()
            return False

        if self.playlist.current is None:
            self.playlist.select(0)
            self.transport.load()

        self._start_playback()
        return True

    def pause(self) -> None:
        self.transport.pause()
        self._set_message("Paused")
        self._notify()

    def stop(self) -> None:
        self.transport.stop()
        self._set_message("Stopped")
        self._notify()

    def next_track(self) -> Optional[Track]:
        track = self.playlist.next()
        if track:
            self.transport.load()
            self._start_playback()
        return track

    def previous_track(self) -> Optional[Track]:
        track = self.playlist.previous()
        if track:
            self.transport.load()
            self._start_playback()
        return track

    def track_ended(self) -> Optional[Track]:
        """Advance after the front end reports the current track finished.

        Wraps to the first track like ``next_track``.

        Returns:
            The track now playing, or None if the playlist is empty.
        """
        logger.debug("Current track ended, advancing")
        return self.next_track()

    def set_volume(self, percent: int) -> None:
        self.transport.set_volume(percent)
        self._notify()

    def seek(self, seconds: float) -> None:
        self.transport.seek(seconds)
        self._notify()

    # Transformation job

    @property
    def job_task(self) -> Optional[asyncio.Task]:
        return self._job_task

    def submit_transform(self) -> SubmitStatus:
        """Start transforming the current track in the background.

        Returns immediately. The outcome is reported through the job state
        and observers once the transformer exits.

        Returns:
            ACCEPTED if a job was started, otherwise the reason it wasn't.
        """
        track = self.playlist.current
        if track is None:
            self._set_message(SELECT_TRACK_MESSAGE, transient=True)
            self._notify()
            return SubmitStatus.NO_TRACK_SELECTED

        if not self.job_state.try_begin():
            logger.warning("Transformation already running, ignoring request")
            return SubmitStatus.ALREADY_RUNNING

        logger.info(f"Transforming {track.path}")
        self._set_message(TRANSFORMING_MESSAGE)
        self._job_task = asyncio.create_task(self._run_job(track))
        self._notify()
        return SubmitStatus.ACCEPTED

    async def _run_job(self, track: Track) -> None:
        error_message = UNEXPECTED_ERROR_MESSAGE
        try:
            result, error = await dispatch(track.path, self.config.transformer)
            if error:
                error_message = error.message
                self._set_message(f"Transformation failed: {error.message}")
                return

            try:
                self._import_file(result.output_path)
            except LibraryError as e:
                error_message = f"Transformed file could not be added: {e}"
                self._set_message(error_message)
                return

            self.job_state.succeed()
            self._set_message(TRANSFORM_DONE_MESSAGE, transient=True)

        except asyncio.CancelledError:
            error_message = "Transformation cancelled"
            self._set_message(error_message)
            raise

        except Exception:
            logger.exception("Unexpected error during transformation")
            self._set_message(UNEXPECTED_ERROR_MESSAGE)

        finally:
            # The job slot must be released on every path
            if self.job_state.is_running:
                self.job_state.fail(error_message)
            self._job_task = None
            self._notify()

    async def wait_for_job(self) -> None:
        """Wait until the running job, if any, has finished."""
        task = self._job_task
        if task:
            await asyncio.shield(task)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop timers and give a running job a moment before cancelling it."""
        if self._message_reset:
            self._message_reset.cancel()
            self._message_reset = None

        task = self._job_task
        if not task or task.done():
            return

        logger.info("Waiting for running transformation to finish")
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Transformation still running, cancelling it")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

            # A task cancelled before its first step never reaches its finally
            if self.job_state.is_running:
                self.job_state.fail("Transformation cancelled")
                self._job_task = None
