"""
ffmpeg job description for the audio merge pipeline.

A job is an ordered list of input bindings, a filter graph (concat, then an
optional loudness-normalization stage) and the output encoding options. The
graph and the argument vector are built with ``ffmpeg-python``. The helpers at
the bottom parse the engine's own duration and progress reports.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import ffmpeg

__all__ = [
    "EncodingProfile",
    "HIGH_QUALITY_PROFILE",
    "SIMPLE_PROFILE",
    "FilterGraph",
    "MergeRequest",
    "build_filter_graph",
    "build_command",
    "parse_duration_line",
    "parse_progress_line",
    "progress_percent",
]

# Global flags placed ahead of the inputs. Progress goes to stdout as key=value lines.
ENGINE_FLAGS = ("-hide_banner", "-nostdin", "-y", "-progress", "pipe:1", "-nostats")


@dataclass(frozen=True)
class EncodingProfile:
    codec: Optional[str] = None
    bitrate: Optional[str] = None
    sample_rate: Optional[int] = None
    vbr_quality: Optional[int] = None
    normalize_loudness: bool = False

    def output_kwargs(self) -> Dict[str, object]:
        """Keyword options for ``ffmpeg.output``; each key becomes ``-<key> <value>``."""
        kwargs: Dict[str, object] = {}
        if self.codec:
            kwargs["c:a"] = self.codec
        if self.bitrate:
            kwargs["b:a"] = self.bitrate
        if self.sample_rate:
            kwargs["ar"] = self.sample_rate
        if self.vbr_quality is not None:
            kwargs["q:a"] = self.vbr_quality
        return kwargs


# 48kHz / 320kbps MP3, highest-quality VBR, loudness normalized.
HIGH_QUALITY_PROFILE = EncodingProfile(
    codec="libmp3lame",
    bitrate="320k",
    sample_rate=48000,
    vbr_quality=0,
    normalize_loudness=True,
)

# Concat only, encoder chosen by the output container.
SIMPLE_PROFILE = EncodingProfile()


@dataclass(frozen=True)
class MergeRequest:
    inputs: Tuple[Path, ...]
    output: Path


@dataclass(frozen=True)
class FilterGraph:
    input_count: int
    normalize_loudness: bool

    def apply(self, sources: Sequence[str]):
        """Bind ``sources`` in order and return the graph's final audio stream."""
        if len(sources) != self.input_count:
            raise ValueError(f"Expected {self.input_count} inputs, got {len(sources)}.")
        streams = [ffmpeg.input(source).audio for source in sources]
        merged = ffmpeg.concat(*streams, v=0, a=1)
        if self.normalize_loudness:
            merged = merged.filter("loudnorm")
        return merged

    def render(self) -> str:
        """The ``-filter_complex`` text, rendered over placeholder inputs."""
        placeholders = [f"input{index}" for index in range(self.input_count)]
        args = self.apply(placeholders).output("-").get_args()
        return args[args.index("-filter_complex") + 1]


def build_filter_graph(input_count: int, profile: EncodingProfile) -> FilterGraph:
    if input_count < 1:
        raise ValueError("A filter graph needs at least one input.")
    return FilterGraph(input_count=input_count, normalize_loudness=profile.normalize_loudness)


def build_command(
    request: MergeRequest,
    profile: EncodingProfile,
    ffmpeg_path: str,
) -> List[str]:
    graph = build_filter_graph(len(request.inputs), profile)
    stream = graph.apply([str(path) for path in request.inputs])
    output = stream.output(str(request.output), **profile.output_kwargs())
    return output.compile(cmd=[ffmpeg_path, *ENGINE_FLAGS])


_DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_duration_line(line: str) -> Optional[float]:
    """
    Seconds from an input banner line such as ``Duration: 00:00:03.02, start: ...``.
    Returns ``None`` for other lines and for ``Duration: N/A``.
    """
    match = _DURATION_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_progress_line(line: str) -> Optional[float]:
    """
    Seconds of output written so far, from ``-progress`` key/value output.

    Both ``out_time_us`` and the misnamed ``out_time_ms`` carry microseconds.
    """
    key, _, value = line.strip().partition("=")
    if key not in ("out_time_us", "out_time_ms"):
        return None
    try:
        micros = int(value)
    except ValueError:
        return None
    if micros < 0:
        return None
    return micros / 1_000_000


def progress_percent(elapsed: float, durations: Sequence[float]) -> Optional[float]:
    total = sum(durations)
    if total <= 0:
        return None
    return min(100.0, elapsed / total * 100.0)
