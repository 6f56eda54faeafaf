# tests/nasimg/conftest.py

import io
import posixpath
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from nasimg.config import AppConfig
from nasimg.utils.exceptions import RemoteFSError
from nasimg.utils.remote_fs import RemoteEntry

MTIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeRemoteTree:
    """
    An in-memory stand-in for the SFTP accessor.

    The tree is described by file paths (parents are created implicitly) and
    extra empty directories. Paths in ``failing`` cannot be listed and paths in
    ``unreadable`` are listed but cannot be opened.
    """

    def __init__(
        self,
        files: dict[str, bytes] | None = None,
        dirs: list[str] | None = None,
        failing: set[str] | None = None,
        unreadable: set[str] | None = None,
    ):
        self.files = dict(files or {})
        self.directories = {"/"}
        for path in dirs or []:
            self._add_dir(path)
        for path in self.files:
            self._add_dir(posixpath.dirname(path))
        self.failing = set(failing or [])
        self.unreadable = set(unreadable or [])
        self.listed: list[str] = []
        self.open_handles = 0
        self.closed = False

    def _add_dir(self, path: str) -> None:
        while path not in self.directories:
            self.directories.add(path)
            path = posixpath.dirname(path)

    def list_directory(self, path: str) -> list[RemoteEntry]:
        self.listed.append(path)
        if path in self.failing:
            raise RemoteFSError(path, "Permission denied")
        if path not in self.directories:
            raise RemoteFSError(path, "No such file")

        entries = [
            RemoteEntry(name=posixpath.basename(d), is_dir=True, modified_at=MTIME)
            for d in sorted(self.directories)
            if d != path and posixpath.dirname(d) == path
        ]
        entries += [
            RemoteEntry(name=posixpath.basename(f), is_dir=False, modified_at=MTIME)
            for f in sorted(self.files)
            if posixpath.dirname(f) == path
        ]
        return entries

    @contextmanager
    def open_for_read(self, path: str):
        if path in self.unreadable or path not in self.files:
            raise RemoteFSError(path, "No such file")
        self.open_handles += 1
        try:
            yield io.BytesIO(self.files[path])
        finally:
            self.open_handles -= 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_tree():
    """Provides the FakeRemoteTree class so tests can build their own trees."""
    return FakeRemoteTree


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig(
        _env_file=None,
        SSH_HOST="nas.test",
        SSH_USER="photos",
        SSH_PASSWORD="secret",
    )
