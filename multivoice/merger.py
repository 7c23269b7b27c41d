from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections import deque
from pathlib import Path
from typing import AsyncIterator, Deque, List, Optional, Sequence, Union

from .config import FFMPEG_PATH_ENV_VAR, resolve_ffmpeg_path
from .errors import (
    EngineFailureError,
    EngineUnavailableError,
    InputFileNotFoundError,
    InvalidArgumentError,
    MergeCancelledError,
    MergeError,
)
from .events import EventRelay, LoggingMergeObserver, MergeObserver
from .ffmpeg_job import (
    HIGH_QUALITY_PROFILE,
    EncodingProfile,
    MergeRequest,
    build_command,
    parse_duration_line,
    parse_progress_line,
    progress_percent,
)

logger = logging.getLogger(__name__)

__all__ = ["validate_request", "merge", "merge_sync"]

PathLike = Union[str, os.PathLike]

STDERR_TAIL_LINES = 50
READ_CHUNK_SIZE = 64 * 1024


def validate_request(inputs: Optional[Sequence[PathLike]], output: Optional[PathLike]) -> MergeRequest:
    """
    Check the caller's arguments and that every input is a readable file.

    Argument errors are collected and reported together before the file system
    is touched. The existence check stops at the first bad path.
    """
    problems: List[str] = []
    items: list = []
    if inputs is not None and not isinstance(inputs, (str, bytes, os.PathLike)):
        try:
            items = list(inputs)
        except TypeError:
            items = []
    if not items:
        problems.append("inputs must be a non-empty sequence of file paths")
    else:
        for index, item in enumerate(items):
            if not isinstance(item, (str, os.PathLike)) or not os.fspath(item):
                problems.append(f"inputs[{index}] is not a file path: {item!r}")
    if not isinstance(output, (str, os.PathLike)) or not os.fspath(output):
        problems.append("output must be a non-empty file path")
    if problems:
        raise InvalidArgumentError("; ".join(problems))

    paths = tuple(Path(item) for item in items)
    for path in paths:
        if not path.is_file() or not os.access(path, os.R_OK):
            raise InputFileNotFoundError(path)

    return MergeRequest(inputs=paths, output=Path(output))  # type: ignore[arg-type]


async def merge(
    inputs: Sequence[PathLike],
    output: PathLike,
    *,
    profile: EncodingProfile = HIGH_QUALITY_PROFILE,
    observer: Optional[MergeObserver] = None,
    ffmpeg_path: Optional[str] = None,
    timeout: Optional[float] = None,
) -> None:
    """
    Concatenate ``inputs`` in order into ``output`` with one ffmpeg process.

    With the default profile the result is loudness normalized and encoded as
    48kHz / 320kbps MP3. Lifecycle events go to ``observer`` (a logging observer
    when omitted). Cancelling the awaiting task, or exceeding ``timeout``
    seconds, kills the engine. Nothing is promised about ``output`` after a
    failure.
    """
    request = validate_request(inputs, output)
    relay = EventRelay(observer if observer is not None else LoggingMergeObserver())

    engine = resolve_ffmpeg_path(ffmpeg_path)
    if engine is None:
        error = EngineUnavailableError(
            f"ffmpeg not found. Install ffmpeg or set {FFMPEG_PATH_ENV_VAR}."
        )
        relay.fail(error)
        raise error

    logger.info("Merging %d audio files...", len(request.inputs))
    logger.info("Input files: %s", ", ".join(str(path) for path in request.inputs))
    logger.info("Output file: %s", request.output)
    if profile.normalize_loudness:
        logger.info(
            "Quality: %s Hz, %s, loudness normalized",
            profile.sample_rate or "source",
            profile.bitrate or "default bitrate",
        )

    cmd = build_command(request, profile, engine)
    try:
        if timeout is None:
            await _run_engine(cmd, request, relay)
        else:
            await asyncio.wait_for(_run_engine(cmd, request, relay), timeout)
    except asyncio.TimeoutError:
        error = MergeCancelledError(f"Merge timed out after {timeout} seconds.")
        relay.fail(error)
        raise error from None
    except asyncio.CancelledError:
        relay.fail(MergeCancelledError("Merge cancelled."))
        raise
    except MergeError as exc:
        relay.fail(exc)
        raise

    relay.succeed(request.output)


def merge_sync(inputs: Sequence[PathLike], output: PathLike, **kwargs) -> None:
    """Blocking wrapper around :func:`merge` for callers without an event loop."""
    asyncio.run(merge(inputs, output, **kwargs))


async def _run_engine(cmd: List[str], request: MergeRequest, relay: EventRelay) -> None:
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise EngineUnavailableError(f"Unable to start ffmpeg ({cmd[0]}): {exc}") from exc

    relay.start(cmd)
    durations: List[float] = []
    stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    readers = [
        asyncio.ensure_future(_collect_stderr(process.stderr, durations, stderr_tail)),
        asyncio.ensure_future(_relay_progress(process.stdout, durations, relay)),
    ]
    try:
        await asyncio.gather(*readers)
        returncode = await process.wait()
    except Exception as exc:
        raise EngineFailureError(
            "".join(stderr_tail),
            process.returncode,
            reason=f"lost track of ffmpeg output: {exc}",
        ) from exc
    finally:
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

    if returncode != 0:
        raise EngineFailureError("".join(stderr_tail), returncode)
    if not request.output.exists():
        raise EngineFailureError(
            "".join(stderr_tail),
            returncode,
            reason=f"ffmpeg exited cleanly but did not write {request.output}",
        )


async def _read_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    # StreamReader.readline() fails on lines longer than its buffer limit.
    pending = b""
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        *lines, pending = (pending + chunk).split(b"\n")
        for line in lines:
            yield (line + b"\n").decode("utf-8", errors="replace")
    if pending:
        yield pending.decode("utf-8", errors="replace")


async def _collect_stderr(
    stream: asyncio.StreamReader,
    durations: List[float],
    tail: Deque[str],
) -> None:
    async for line in _read_lines(stream):
        tail.append(line)
        seconds = parse_duration_line(line)
        if seconds is not None:
            durations.append(seconds)


async def _relay_progress(
    stream: asyncio.StreamReader,
    durations: List[float],
    relay: EventRelay,
) -> None:
    async for line in _read_lines(stream):
        elapsed = parse_progress_line(line)
        if elapsed is None:
            continue
        percent = progress_percent(elapsed, durations)
        if percent is not None:
            relay.progress(percent)
