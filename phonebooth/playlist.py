"""Playlist and transport state."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

from .library import FileInfo

logger = logging.getLogger(__name__)

NO_TRACK = -1


class PlaylistError(Exception):
    """Raised for invalid playlist or transport operations."""


class PlaybackStateEnum(str, Enum):
    """Transport state reported to the front end."""

    STOPPED = "Stopped"
    PLAYING = "Playing"
    PAUSED = "Paused"


@dataclass(frozen=True)
class Track:
    """A playlist entry."""

    name: str
    path: Path
    size: int

    @classmethod
    def from_file_info(cls, info: FileInfo) -> "Track":
        return cls(name=info.name, path=info.path, size=info.size)


class Playlist:
    """Ordered tracks, unique by path, with a current position."""

    def __init__(self):
        self._tracks: List[Track] = []
        self._current_index: int = NO_TRACK

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks)

    def __contains__(self, path: object) -> bool:
        return any(track.path == path for track in self._tracks)

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current(self) -> Optional[Track]:
        """The selected track, or None if nothing is selected."""
        if 0 <= self._current_index < len(self._tracks):
            return self._tracks[self._current_index]
        return None

    def add(self, track: Track) -> bool:
        """Append a track unless one with the same path is already present.

        Returns:
            True if the track was added, False if it was a duplicate.
        """
        if track.path in self:
            logger.debug(f"Skipping duplicate track: {track.path}")
            return False
        self._tracks.append(track)
        return True

    def clear(self) -> None:
        self._tracks.clear()
        self._current_index = NO_TRACK

    def select(self, index: int) -> Track:
        """Make the track at ``index`` current.

        Raises:
            PlaylistError: If the index is out of range.
        """
        if not 0 <= index < len(self._tracks):
            raise PlaylistError(
                f"Track index {index} out of range (playlist has {len(self._tracks)} tracks)"
            )
        self._current_index = index
        return self._tracks[index]

    def next(self) -> Optional[Track]:
        """Advance to the next track, wrapping to the first."""
        if not self._tracks:
            return None
        self._current_index = (self._current_index + 1) % len(self._tracks)
        return self._tracks[self._current_index]

    def previous(self) -> Optional[Track]:
        """Step back to the previous track, wrapping to the last."""
        if not self._tracks:
            return None
        index = self._current_index - 1
        if index < 0:
            index = len(self._tracks) - 1
        self._current_index = index
        return self._tracks[index]


class Transport:
    """Playback state mirrored for the front end's player.

    No audio is decoded here; the front end plays the current track and
    this object only records what it was told to do.
    """

    def __init__(self, volume: int = 70):
        self.state: PlaybackStateEnum = PlaybackStateEnum.STOPPED
        self.position: float = 0.0
        self.volume: int = volume

    def play(self) -> None:
        self.state = PlaybackStateEnum.PLAYING

    def pause(self) -> None:
        self.state = PlaybackStateEnum.PAUSED

    def stop(self) -> None:
        self.state = PlaybackStateEnum.STOPPED
        self.position = 0.0

    def load(self) -> None:
        """Reset the position for a newly selected track."""
        self.position = 0.0

    def seek(self, seconds: float) -> None:
        self.position = max(0.0, float(seconds))

    def set_volume(self, percent: int) -> None:
        """Set the volume in percent.

        Raises:
            PlaylistError: If the value is outside 0..100.
        """
        if not 0 <= percent <= 100:
            raise PlaylistError(f"Volume must be between 0 and 100, got {percent}")
        self.volume = percent
