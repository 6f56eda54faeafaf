"""
The image-bearing directory index.

``DirectoryIndexer`` walks the remote tree once at startup and appends every
directory holding at least one direct image file to an ``IndexState``. The
state is then published: the appended paths are frozen into a tuple and every
request reads that snapshot without taking a lock.
"""

import posixpath
import threading
from typing import NamedTuple

import structlog
from pydantic import BaseModel

from nasimg.utils.exceptions import RemoteFSError
from nasimg.utils.image_types import is_image
from nasimg.utils.remote_fs import RemoteTreeAccessor
from nasimg_core.tracing import get_tracer

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


class IndexSnapshot(NamedTuple):
    directories: tuple[str, ...]
    accessor: RemoteTreeAccessor | None


class IndexState:
    """
    Holds the directory index and the accessor that serves it.

    Single writer then many readers: ``append`` runs under an exclusive lock
    while the index is being built, ``publish`` is called exactly once, and
    ``get`` returns an immutable snapshot.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: list[str] = []
        self._snapshot = IndexSnapshot(directories=(), accessor=None)
        self._published = False

    @property
    def published(self) -> bool:
        return self._published

    def append(self, directory: str) -> None:
        with self._lock:
            if self._published:
                raise RuntimeError("Directory index is already published")
            self._pending.append(directory)

    def publish(self, accessor: RemoteTreeAccessor) -> IndexSnapshot:
        with self._lock:
            if self._published:
                raise RuntimeError("Directory index is already published")
            self._snapshot = IndexSnapshot(
                directories=tuple(self._pending), accessor=accessor
            )
            self._pending = []
            self._published = True
            return self._snapshot

    def get(self) -> IndexSnapshot:
        # A single reference read; publish swaps the whole snapshot at once.
        return self._snapshot


class WalkFailure(BaseModel):
    """A directory whose listing failed during the walk; its subtree is skipped."""

    path: str
    error: str


class IndexBuildReport(BaseModel):
    directories: tuple[str, ...]
    failures: tuple[WalkFailure, ...]
    visited: int


class DirectoryIndexer:
    """Depth-first walk of a remote tree using an explicit work-list."""

    def __init__(self, accessor: RemoteTreeAccessor, state: IndexState):
        self.accessor = accessor
        self.state = state

    def build_index(self, root: str = "/") -> IndexBuildReport:
        """
        Walk the tree under ``root`` and record every directory that directly
        contains an image file.

        A directory that cannot be listed is logged and skipped together with
        its subtree; the walk continues with the remaining pending directories.
        Symbolic links are never reported as directories by the accessor, so
        they are not descended into.

        Returns:
            A report with the indexed directories, the per-directory failures
            and the number of directories visited.
        """
        directories: list[str] = []
        failures: list[WalkFailure] = []
        visited: set[str] = set()
        pending: list[tuple[str, int]] = [(root, 0)]

        with tracer.start_as_current_span("directory_index.build") as span:
            span.set_attribute("index.root", root)

            while pending:
                path, depth = pending.pop()
                if path in visited:
                    logger.warning("Directory already visited, skipping", path=path)
                    continue
                visited.add(path)

                try:
                    entries = self.accessor.list_directory(path)
                except RemoteFSError as e:
                    failures.append(WalkFailure(path=path, error=str(e)))
                    logger.warning(
                        "Failed to list directory, skipping subtree",
                        path=path,
                        error=str(e),
                    )
                    continue

                has_images = any(
                    not entry.is_dir and is_image(entry.name) for entry in entries
                )
                if has_images:
                    self.state.append(path)
                    directories.append(path)

                logger.debug(
                    "Visited directory",
                    path=path,
                    depth=depth,
                    contains_images=has_images,
                )

                subdirectories = [
                    posixpath.join(path, entry.name) for entry in entries if entry.is_dir
                ]
                # Reversed so siblings are visited in listing order.
                pending.extend((sub, depth + 1) for sub in reversed(subdirectories))

            span.set_attribute("index.directories", len(directories))
            span.set_attribute("index.failures", len(failures))

        logger.info(
            "Directory index built",
            root=root,
            directories=len(directories),
            visited=len(visited),
            failures=len(failures),
        )
        return IndexBuildReport(
            directories=tuple(directories),
            failures=tuple(failures),
            visited=len(visited),
        )
