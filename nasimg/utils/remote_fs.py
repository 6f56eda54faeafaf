"""
Remote tree access over SFTP.

The core only talks to the ``RemoteTreeAccessor`` protocol; ``SFTPTreeAccessor``
is the paramiko-backed implementation wired in at startup.
"""

import queue
import stat
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime, timezone
from typing import BinaryIO, Protocol

import paramiko
import structlog
from pydantic import BaseModel

from nasimg.config import AppConfig
from nasimg.utils.exceptions import RemoteFSError

logger = structlog.get_logger(__name__)

# OpenSSH allows 10 sessions per connection by default (MaxSessions).
DEFAULT_MAX_SESSIONS = 4


class RemoteEntry(BaseModel):
    """A single direct child of a remote directory."""

    name: str
    is_dir: bool
    modified_at: datetime


class RemoteTreeAccessor(Protocol):
    """
    The contract for listing and reading a remote file tree.
    Every method raises RemoteFSError on transport or protocol failure.
    """

    def list_directory(self, path: str) -> list[RemoteEntry]:
        """Return the direct entries of ``path``, without ``.`` and ``..``."""
        ...

    def open_for_read(self, path: str) -> AbstractContextManager[BinaryIO]:
        """Open ``path`` for binary reading; the handle is released when the block exits."""
        ...

    def close(self) -> None: ...


class SFTPTreeAccessor:
    """
    An implementation of RemoteTreeAccessor over a single SSH connection.

    SFTP channels on the shared transport are kept in a bounded pool. Each
    call checks one channel out and returns it afterwards, so no two requests
    interleave on one SFTP session and at most ``max_sessions`` channels are
    ever open, whatever the worker threads do.
    """

    def __init__(self, client: paramiko.SSHClient, max_sessions: int = DEFAULT_MAX_SESSIONS):
        self._client = client
        self._slots = threading.BoundedSemaphore(max_sessions)
        self._idle: queue.LifoQueue[paramiko.SFTPClient] = queue.LifoQueue()
        self._sessions: list[paramiko.SFTPClient] = []
        self._sessions_lock = threading.Lock()

    @property
    def open_sessions(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    def _open_session(self) -> paramiko.SFTPClient:
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise RemoteFSError("/", "SSH transport is not connected")

        try:
            sftp = paramiko.SFTPClient.from_transport(transport)
        except paramiko.SSHException as e:
            raise RemoteFSError("/", f"failed to open SFTP session: {e}") from e
        if sftp is None:
            raise RemoteFSError("/", "failed to open SFTP session")

        with self._sessions_lock:
            self._sessions.append(sftp)
            opened = len(self._sessions)
        logger.debug("Opened SFTP session", open_sessions=opened)
        return sftp

    def _discard_session(self, sftp: paramiko.SFTPClient) -> None:
        with self._sessions_lock:
            if sftp in self._sessions:
                self._sessions.remove(sftp)
        sftp.close()

    @contextmanager
    def _checkout(self, path: str) -> Iterator[paramiko.SFTPClient]:
        """
        Borrow a pooled SFTP session, opening one if none is idle.

        Blocks while every session is in use. A session that hit a protocol
        error is closed instead of being returned to the pool.
        """
        self._slots.acquire()
        try:
            try:
                sftp = self._idle.get_nowait()
            except queue.Empty:
                sftp = self._open_session()
        except BaseException:
            self._slots.release()
            raise

        healthy = True
        try:
            yield sftp
        except paramiko.SSHException as e:
            healthy = False
            raise RemoteFSError(path, str(e)) from e
        except OSError as e:
            raise RemoteFSError(path, str(e)) from e
        finally:
            if healthy:
                self._idle.put(sftp)
            else:
                self._discard_session(sftp)
            self._slots.release()

    def list_directory(self, path: str) -> list[RemoteEntry]:
        with self._checkout(path) as sftp:
            attributes = sftp.listdir_attr(path)

        entries = []
        for attr in attributes:
            if attr.filename in (".", ".."):
                continue
            entries.append(
                RemoteEntry(
                    name=attr.filename,
                    is_dir=stat.S_ISDIR(attr.st_mode or 0),
                    modified_at=datetime.fromtimestamp(
                        attr.st_mtime or 0, tz=timezone.utc
                    ),
                )
            )
        return entries

    @contextmanager
    def open_for_read(self, path: str) -> Iterator[BinaryIO]:
        with self._checkout(path) as sftp:
            with sftp.open(path, "rb") as handle:
                handle.prefetch()
                yield handle

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for sftp in sessions:
            sftp.close()
        self._client.close()
        logger.info("Remote filesystem connection closed.", sessions=len(sessions))


def connect_sftp(settings: AppConfig) -> SFTPTreeAccessor:
    """
    Open a password-authenticated SSH connection and wrap it in an accessor.
    Called once during the application's startup lifespan.
    """
    client = paramiko.SSHClient()
    try:
        if settings.ssh_known_hosts is not None:
            client.load_host_keys(str(settings.ssh_known_hosts))
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        client.connect(
            hostname=settings.ssh_host,
            port=settings.ssh_port,
            username=settings.ssh_user,
            password=settings.ssh_password.get_secret_value(),
            timeout=settings.ssh_connect_timeout,
            allow_agent=False,
            look_for_keys=False,
        )
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise RemoteFSError(
            f"{settings.ssh_host}:{settings.ssh_port}", f"failed to connect: {e}"
        ) from e

    logger.info(
        "Connected to remote host.",
        host=settings.ssh_host,
        port=settings.ssh_port,
        user=settings.ssh_user,
    )
    return SFTPTreeAccessor(client, max_sessions=settings.sftp_max_sessions)
