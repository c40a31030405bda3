"""Generic subprocess adapter shared by every backend."""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from time import monotonic

from ._base import BackendRequest, BackendResult, BackendSpec, FailureKind

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Awaitable[None]]

DEFAULT_TIMEOUT = 300.0


class BackendAdapter:
    """Runs one backend CLI per call with a hard ceiling.

    Failure mapping: a spawn error or a timeout carries no stdout text
    beyond what was already produced; a non-zero exit is an error only
    when stderr has content.  Nothing is retried.
    """

    CHUNK_SIZE = 4096

    def __init__(self, spec: BackendSpec, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._spec = spec
        self._timeout = timeout

    @property
    def spec(self) -> BackendSpec:
        return self._spec

    @property
    def name(self) -> str:
        return self._spec.name

    def argv(self, request: BackendRequest) -> list[str]:
        return [self._spec.find_binary(), *self._spec.build_args(request)]

    async def invoke(self, request: BackendRequest) -> BackendResult:
        t0 = monotonic()
        proc = await self._spawn(request)
        if isinstance(proc, BackendResult):
            return proc
        try:
            async with asyncio.timeout(self._timeout):
                stdout, stderr = await proc.communicate()
        except TimeoutError:
            await _kill(proc)
            return self._timed_out(t0)
        finally:
            if proc.returncode is None:
                await _kill(proc)
        return self._finish(
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            t0,
        )

    async def invoke_streaming(
        self, request: BackendRequest, on_chunk: ChunkCallback,
    ) -> BackendResult:
        """Like :meth:`invoke`, but await *on_chunk* for every stdout chunk.

        The callback runs inline in the read loop, so a slow consumer
        back-pressures the subprocess instead of dropping output.
        """
        t0 = monotonic()
        proc = await self._spawn(request)
        if isinstance(proc, BackendResult):
            return proc
        assert proc.stdout is not None and proc.stderr is not None
        stderr_task = asyncio.create_task(proc.stderr.read())
        collected: list[str] = []
        try:
            async with asyncio.timeout(self._timeout):
                async for chunk in _iter_text(proc.stdout, self.CHUNK_SIZE):
                    collected.append(chunk)
                    await on_chunk(chunk)
                await proc.wait()
        except TimeoutError:
            stderr_task.cancel()
            await _kill(proc)
            return self._timed_out(t0, "".join(collected))
        finally:
            if proc.returncode is None:
                stderr_task.cancel()
                await _kill(proc)
        stderr = await stderr_task
        return self._finish(
            proc.returncode, "".join(collected), stderr.decode("utf-8", errors="replace"), t0,
        )

    # -- internals ---------------------------------------------------------

    async def _spawn(
        self, request: BackendRequest,
    ) -> asyncio.subprocess.Process | BackendResult:
        argv = self.argv(request)
        logger.info(
            "[backend.%s] starting: agent=%s model=%s cwd=%s",
            self.name, request.agent, request.model or "default", request.project_dir,
        )
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=request.project_dir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning("[backend.%s] spawn failed: %s", self.name, exc)
            return BackendResult(error=str(exc), failure=FailureKind.spawn)

    def _timed_out(self, t0: float, text: str = "") -> BackendResult:
        logger.error(
            "[backend.%s] TIMEOUT after %.0fs (ceiling %.0fs)",
            self.name, monotonic() - t0, self._timeout,
        )
        return BackendResult(text=text, error="timed out", failure=FailureKind.timeout)

    def _finish(self, returncode: int | None, stdout: str, stderr: str, t0: float) -> BackendResult:
        elapsed = monotonic() - t0
        stderr = stderr.strip()
        if returncode != 0 and stderr:
            logger.warning(
                "[backend.%s] FAILED (%.1fs, rc=%s): %s",
                self.name, elapsed, returncode, stderr[:300],
            )
            return BackendResult(text=stdout, error=stderr, failure=FailureKind.exit)
        logger.info(
            "[backend.%s] OK (%.1fs, rc=%s, %d chars)", self.name, elapsed, returncode, len(stdout),
        )
        return BackendResult(text=stdout)


async def _iter_text(stream: asyncio.StreamReader, size: int) -> AsyncIterator[str]:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        raw = await stream.read(size)
        if not raw:
            tail = decoder.decode(b"", final=True)
            if tail:
                yield tail
            return
        text = decoder.decode(raw)
        if text:
            yield text


async def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()
