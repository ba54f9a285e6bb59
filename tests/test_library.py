"""Tests for audio file discovery."""

import os
from pathlib import Path

import pytest

from phonebooth.library import (
    LibraryError,
    find_audio_files,
    get_file_info,
    is_supported_audio,
    validate_audio_file,
)


@pytest.fixture
def music_dir(tmp_path):
    """Create a small music tree."""
    root = tmp_path / "music"
    (root / "b_album" / "disc1").mkdir(parents=True)
    (root / "a_album").mkdir()
    (root / "a_album" / "01.mp3").write_bytes(b"a")
    (root / "a_album" / "cover.jpg").write_bytes(b"j")
    (root / "b_album" / "disc1" / "01.FLAC").write_bytes(b"f")
    (root / "b_album" / "notes.txt").write_text("n")
    (root / "top.wav").write_bytes(b"w")
    return root


@pytest.mark.parametrize(
    "name, expected",
    [
        ("song.mp3", True),
        ("SONG.MP3", True),
        ("take.Wav", True),
        ("a.ogg", True),
        ("a.flac", True),
        ("a.m4a", True),
        ("a.aac", True),
        ("a.txt", False),
        ("mp3", False),
        ("archive.mp3.zip", False),
    ],
)
def test_is_supported_audio(name, expected):
    """Test extension matching is case-insensitive."""
    assert is_supported_audio(name) is expected


def test_is_supported_audio_custom_extensions():
    """Test configured extensions replace the defaults."""
    assert is_supported_audio("a.opus", ["opus"])
    assert not is_supported_audio("a.mp3", [".opus"])


def test_find_audio_files(music_dir):
    """Test nested audio files are found in name order."""
    found = find_audio_files(music_dir)

    root = music_dir
    # Files of a directory come before its subdirectories
    assert found == [
        root / "top.wav",
        root / "a_album" / "01.mp3",
        root / "b_album" / "disc1" / "01.FLAC",
    ]


def test_find_audio_files_deep_tree(tmp_path):
    """Test a tree deeper than the recursion limit is walked."""
    current = tmp_path / "deep"
    current.mkdir()
    depth = 1200
    for i in range(depth):
        current = current / "d"
        current.mkdir()
    (current / "bottom.ogg").write_bytes(b"o")

    found = find_audio_files(tmp_path / "deep")

    assert len(found) == 1
    assert found[0].name == "bottom.ogg"


def test_find_audio_files_skips_symlinked_dirs(music_dir, tmp_path):
    """Test symlinked directories are not followed."""
    os.symlink(music_dir / "a_album", music_dir / "link_album")

    found = find_audio_files(music_dir)

    assert len(found) == 3
    assert not any("link_album" in str(path) for path in found)


def test_find_audio_files_missing_folder(tmp_path):
    """Test a missing folder raises LibraryError."""
    with pytest.raises(LibraryError, match="Not a directory"):
        find_audio_files(tmp_path / "missing")


def test_find_audio_files_empty(tmp_path):
    """Test an empty folder yields nothing."""
    assert find_audio_files(tmp_path) == []


def test_validate_audio_file(music_dir):
    """Test a valid file comes back as an absolute path."""
    path = validate_audio_file(music_dir / "top.wav")
    assert path == music_dir / "top.wav"


def test_validate_audio_file_keeps_symlink(music_dir, tmp_path):
    """Test a symlinked file keeps the chosen path instead of its target."""
    store = tmp_path / "store"
    store.mkdir()
    (store / "blob123.mp3").write_bytes(b"m")
    link = music_dir / "song.mp3"
    os.symlink(store / "blob123.mp3", link)

    assert validate_audio_file(link) == link


def test_validate_audio_file_relative(music_dir, monkeypatch):
    """Test relative paths are made absolute against the cwd."""
    monkeypatch.chdir(music_dir)
    assert validate_audio_file("top.wav") == Path.cwd() / "top.wav"


def test_validate_audio_file_errors(music_dir):
    """Test missing, directory and non-audio paths are rejected."""
    with pytest.raises(LibraryError, match="File not found"):
        validate_audio_file(music_dir / "nope.mp3")
    with pytest.raises(LibraryError, match="Not a file"):
        validate_audio_file(music_dir / "a_album")
    with pytest.raises(LibraryError, match="Unsupported"):
        validate_audio_file(music_dir / "a_album" / "cover.jpg")


def test_get_file_info(music_dir):
    """Test file info carries name, size and path."""
    info = get_file_info(music_dir / "b_album" / "notes.txt")

    assert info.name == "notes.txt"
    assert info.size == 1
    assert info.path == music_dir / "b_album" / "notes.txt"


def test_get_file_info_missing(tmp_path):
    """Test missing files raise LibraryError."""
    with pytest.raises(LibraryError):
        get_file_info(tmp_path / "gone.mp3")
