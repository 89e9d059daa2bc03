"""Process session with incremental output and a hard wall-clock timeout.

vcs-command runtime module

This module provides:
- One external-process execution per session (spawn, stream, reap)
- Stdout/stderr streaming with backpressure control
- Timeout enforcement measured from process start (SIGKILL, no SIGTERM first)
- Optional detachment from the controlling terminal
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True detaches the child from the terminal, so
  tools that prompt (ssh askpass, credential helpers) fail instead of hanging,
  and lets the whole process group be killed
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- A killed process that is not reaped within kill_timeout is an error
- Exit is judged by the return code, not by pipe EOF: a background child
  holding stdout/stderr open does not make a finished job time out
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from ..errors import ProcessReapError, SpawnFailure

__all__ = [
    "IS_WINDOWS",
    "OutputChunk",
    "ProcessSession",
    "SessionOutcome",
    "SessionSpec",
    "StreamKind",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

DEFAULT_KILL_TIMEOUT = 2.0  # seconds to wait for reaping after SIGKILL
DEFAULT_DRAIN_TIMEOUT = 0.5  # idle seconds on the pipes after exit before giving up on EOF
DEFAULT_READ_SIZE = 4096
_CHUNK_BUFFER = 64  # chunks buffered between pipe readers and the consumer
_EXIT_POLL_INTERVAL = 0.05


class StreamKind(str, Enum):
    """Which pipe a chunk came from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class OutputChunk:
    """Bytes read from one of the process pipes."""

    kind: StreamKind
    data: bytes


@dataclass(frozen=True)
class SessionSpec:
    """Specification for a process to run.

    Attributes:
        binary: Executable path
        arguments: Arguments passed after the executable
        cwd: Working directory for the process
        timeout: Wall-clock budget in seconds
        env: Environment variables (None = inherit parent)
        allow_controlling_terminal: False runs the child in a new session
    """

    binary: str
    arguments: tuple[str, ...]
    cwd: Path
    timeout: float
    env: Mapping[str, str] | None = None
    allow_controlling_terminal: bool = True

    @property
    def argv(self) -> list[str]:
        return [self.binary, *self.arguments]


@dataclass(frozen=True)
class SessionOutcome:
    """How the process ended.

    Attributes:
        exit_code: Process exit code, None when it was killed on timeout
        timed_out: Whether the timeout elapsed
        duration: Seconds from start to reap
    """

    exit_code: int | None
    timed_out: bool = False
    duration: float = 0.0


@dataclass
class ProcessSession:
    """Owns exactly one external-process execution.

    A session is single use: create it, iterate ``stream()``, then read
    ``outcome``. Leaving the iteration early (break, exception, cancellation)
    kills and reaps the process.

    Example:
        session = ProcessSession(SessionSpec(
            binary="git",
            arguments=("status",),
            cwd=Path("/repo"),
            timeout=30,
        ))

        async for chunk in session.stream():
            handle(chunk.kind, chunk.data)

        print(session.outcome.exit_code)
    """

    spec: SessionSpec
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    read_size: int = DEFAULT_READ_SIZE

    process: asyncio.subprocess.Process | None = field(default=None, init=False)
    started_at: float | None = field(default=None, init=False)
    outcome: SessionOutcome | None = field(default=None, init=False)

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process else None

    async def start(self) -> None:
        """Spawn the process.

        Raises:
            SpawnFailure: If the executable or working directory is unusable
            RuntimeError: If the session was already started
        """
        if self.process is not None:
            raise RuntimeError("ProcessSession can only be started once")

        spec = self.spec
        kwargs = self._build_subprocess_kwargs(spec)

        try:
            # stdin=None would inherit the host's stdin; a prompting tool
            # must see EOF instead.
            self.process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=spec.cwd,
                **kwargs,
            )
        except FileNotFoundError as e:
            if not Path(spec.cwd).is_dir():
                reason = f"working directory does not exist: {spec.cwd}"
            else:
                reason = f"executable not found ({e.strerror or e})"
            raise SpawnFailure(spec.binary, reason) from e
        except NotADirectoryError as e:
            raise SpawnFailure(
                spec.binary, f"working directory is not a directory: {spec.cwd}"
            ) from e
        except PermissionError as e:
            raise SpawnFailure(spec.binary, f"permission denied ({e.strerror or e})") from e
        except OSError as e:
            raise SpawnFailure(spec.binary, str(e)) from e

        self.started_at = time.monotonic()
        logger.debug(
            f"Started subprocess pid={self.process.pid} "
            f"argv={spec.argv} cwd={spec.cwd} timeout={spec.timeout}s"
        )

    async def stream(self) -> AsyncIterator[OutputChunk]:
        """Start the process if needed and yield output as it arrives.

        Stdout and stderr are read concurrently; chunks of one pipe keep
        their order. Reading stops at EOF on both pipes, or once the process
        has exited and the pipes stay idle for ``drain_timeout`` (a background
        child may hold them open). The process is killed only if it has not
        exited when the timeout elapses. Either way ``outcome`` is set once
        iteration ends normally.

        Yields:
            OutputChunk for each read from either pipe

        Raises:
            SpawnFailure: If the process cannot be started
            ProcessReapError: If a killed process does not exit in time
        """
        if self.process is None:
            await self.start()
        process, started_at = self.process, self.started_at
        if process is None or started_at is None:
            raise RuntimeError("ProcessSession has no running process")

        deadline = started_at + self.spec.timeout
        send, receive = anyio.create_memory_object_stream[OutputChunk](_CHUNK_BUFFER)
        readers: list[asyncio.Task[None]] = []
        timed_out = False

        try:
            with send:
                if process.stdout:
                    readers.append(asyncio.create_task(
                        self._pump(process, process.stdout, StreamKind.STDOUT, send.clone())
                    ))
                if process.stderr:
                    readers.append(asyncio.create_task(
                        self._pump(process, process.stderr, StreamKind.STDERR, send.clone())
                    ))

            with receive:
                while True:
                    chunk: OutputChunk | None = None
                    with anyio.move_on_after(deadline - time.monotonic()):
                        try:
                            chunk = await receive.receive()
                        except anyio.EndOfStream:
                            break
                    if chunk is None:
                        # Exited in time but a descendant kept writing
                        timed_out = process.returncode is None
                        break
                    yield chunk

            if not timed_out:
                timed_out = not await self._wait_exit(process, deadline - time.monotonic())

            if timed_out:
                logger.warning(
                    f"Subprocess pid={process.pid} exceeded timeout of "
                    f"{self.spec.timeout}s, killing"
                )
                await self._kill_and_reap(process)
                exit_code = None
            else:
                exit_code = process.returncode

            self.outcome = SessionOutcome(
                exit_code=exit_code,
                timed_out=timed_out,
                duration=time.monotonic() - started_at,
            )
            logger.debug(
                f"Subprocess completed pid={process.pid} "
                f"returncode={process.returncode} timed_out={timed_out}"
            )

        finally:
            # Reap even when the consumer is cancelled
            await self._safe_cleanup(process, readers)

    async def _pump(
        self,
        process: asyncio.subprocess.Process,
        pipe: asyncio.StreamReader,
        kind: StreamKind,
        send: MemoryObjectSendStream[OutputChunk],
    ) -> None:
        """Forward one pipe into the shared chunk stream.

        Stops at EOF, or when the process has exited and the pipe has been
        idle for ``drain_timeout`` since.
        """
        async with send:
            idle_since: float | None = None
            while True:
                data: bytes | None = None
                with anyio.move_on_after(_EXIT_POLL_INTERVAL):
                    data = await pipe.read(self.read_size)
                if data is None:
                    if process.returncode is None:
                        continue
                    now = time.monotonic()
                    if idle_since is None:
                        idle_since = now
                    if now - idle_since >= self.drain_timeout:
                        logger.debug(
                            f"{kind.value} of pid={process.pid} still open "
                            f"{self.drain_timeout}s after exit, stop reading"
                        )
                        break
                    continue
                idle_since = None
                if not data:
                    break
                try:
                    await send.send(OutputChunk(kind, data))
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    # Consumer went away; keep draining so the pipe never fills
                    continue

    def _build_subprocess_kwargs(self, spec: SessionSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            spec: Session specification

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        # Environment
        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if not spec.allow_controlling_terminal:
            if IS_WINDOWS:
                kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
            else:
                # POSIX: start_new_session (equivalent to setsid)
                kwargs["start_new_session"] = True

        return kwargs

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
    ) -> None:
        """Kill, reap and close pipes, shielded from cancellation.

        Args:
            process: The subprocess
            readers: Pipe reader tasks
        """
        try:
            await asyncio.shield(self._do_cleanup(process, readers))
        except asyncio.CancelledError:
            # Outer task cancelled while shielded; finish before propagating
            await self._do_cleanup(process, readers)
            raise

    async def _do_cleanup(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
    ) -> None:
        """Kill and reap a live process, stop the pipe readers, close the pipes.

        Args:
            process: The subprocess
            readers: Pipe reader tasks
        """
        if process.returncode is None:
            try:
                await self._kill_and_reap(process)
            except ProcessReapError as e:
                logger.error(f"Cleanup failed: {e}")

        for task in readers:
            if not task.done():
                task.cancel()
        for task in readers:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Pipe reader for pid={process.pid} ended with {e!r}")

        self._close_pipes(process)

    @staticmethod
    def _close_pipes(process: asyncio.subprocess.Process) -> None:
        """Release the pipe file descriptors, even if a descendant still holds them.

        asyncio.subprocess.Process has no public close(); its transport owns
        the pipes.
        """
        transport = process._transport
        if not transport.is_closing():
            transport.close()
            logger.debug(f"Closed pipes of pid={process.pid}")

    async def _wait_exit(self, process: asyncio.subprocess.Process, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the process itself to exit.

        ``Process.wait()`` also waits for the pipes to close, which never
        happens while a descendant holds them, so the return code is polled.

        Returns:
            True if the process exited
        """
        with anyio.move_on_after(timeout):
            while process.returncode is None:
                await asyncio.sleep(_EXIT_POLL_INTERVAL)
        return process.returncode is not None

    async def _kill_and_reap(self, process: asyncio.subprocess.Process) -> None:
        """Force kill the process (group when isolated) and wait for it.

        Raises:
            ProcessReapError: If the process is still alive after kill_timeout
        """
        pid = process.pid
        try:
            if IS_WINDOWS or self.spec.allow_controlling_terminal:
                process.kill()
                logger.debug(f"Called kill() on pid={pid}")
            else:
                self._posix_kill_group(process)
        except ProcessLookupError:
            # Process already exited
            logger.debug(f"Subprocess already exited pid={pid}")

        if not await self._wait_exit(process, self.kill_timeout):
            raise ProcessReapError(pid, self.kill_timeout)

        logger.debug(f"Subprocess killed pid={pid} returncode={process.returncode}")

    def _posix_kill_group(self, process: asyncio.subprocess.Process) -> None:
        """Send SIGKILL to the process group on POSIX systems.

        Args:
            process: The subprocess
        """
        try:
            # Process group ID equals pid because of start_new_session
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
        except ProcessLookupError:
            raise
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            process.kill()
