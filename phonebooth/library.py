"""Audio file discovery and metadata for playlist imports."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .config import DEFAULT_AUDIO_EXTENSIONS

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class LibraryError(Exception):
    """Raised when a path cannot be imported into the playlist."""


@dataclass(frozen=True)
class FileInfo:
    """Display metadata for an audio file."""

    name: str
    size: int
    path: Path


def _normalize_extensions(extensions: Optional[Iterable[str]]) -> frozenset:
    if extensions is None:
        extensions = DEFAULT_AUDIO_EXTENSIONS
    return frozenset("." + ext.lower().lstrip(".") for ext in extensions)


def is_supported_audio(
    path: PathLike, extensions: Optional[Iterable[str]] = None
) -> bool:
    """Check whether a path carries one of the supported audio extensions.

    The comparison is case-insensitive, so ``SONG.MP3`` matches ``mp3``.
    """
    return Path(path).suffix.lower() in _normalize_extensions(extensions)


def find_audio_files(
    folder: PathLike, extensions: Optional[Iterable[str]] = None
) -> List[Path]:
    """Enumerate audio files below a folder, at any depth.

    Directories are walked with an explicit stack rather than recursion, so
    very deep trees can't exhaust the interpreter's recursion limit. Entries
    are visited in name order to keep imports deterministic. Symlinked
    directories are not followed and unreadable directories are skipped.

    Args:
        folder: Root folder to scan.
        extensions: Accepted extensions; defaults to the standard audio set.

    Returns:
        Absolute paths of matching files in traversal order.

    Raises:
        LibraryError: If the folder doesn't exist or isn't a directory.
    """
    root = Path(folder).expanduser().absolute()
    if not root.is_dir():
        raise LibraryError(f"Not a directory: {root}")

    accepted = _normalize_extensions(extensions)
    audio_files: List[Path] = []
    stack: List[Path] = [root]

    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")
            continue

        subdirs: List[Path] = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(Path(entry.path))
                elif entry.is_file() and Path(entry.name).suffix.lower() in accepted:
                    audio_files.append(Path(entry.path))
            except OSError as e:
                logger.warning(f"Skipping {entry.path}: {e}")

        # Reversed so the first subdirectory is popped first
        stack.extend(reversed(subdirs))

    logger.debug(f"Found {len(audio_files)} audio files under {root}")
    return audio_files


def validate_audio_file(
    path: PathLike, extensions: Optional[Iterable[str]] = None
) -> Path:
    """Make a user-selected path absolute and check it can be imported.

    Raises:
        LibraryError: If the file is missing, not a regular file, or not audio.
    """
    # Symlinks are kept as given, not resolved
    selected = Path(path).expanduser().absolute()
    if not selected.exists():
        raise LibraryError(f"File not found: {selected}")
    if not selected.is_file():
        raise LibraryError(f"Not a file: {selected}")
    if not is_supported_audio(selected, extensions):
        raise LibraryError(f"Unsupported audio format: {selected.suffix or selected.name}")
    return selected


def get_file_info(path: PathLike) -> FileInfo:
    """Return name, size and path of a file.

    Raises:
        LibraryError: If the file can't be stat'ed.
    """
    file_path = Path(path)
    try:
        stats = file_path.stat()
    except OSError as e:
        raise LibraryError(f"Cannot read file info for {file_path}: {e}") from e
    return FileInfo(name=file_path.name, size=stats.st_size, path=file_path)
