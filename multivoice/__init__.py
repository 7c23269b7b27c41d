"""
Uniform speech, transcription, text-generation and audio-merge entry points.

This package exposes the building blocks used by the CLI entry point:

- Speech synthesis engines and the ``tts`` dispatcher (`tts_engine`).
- Transcription engines and the ``stt`` dispatcher (`stt_engine`).
- Text generation engines and the ``llm`` / ``llm_chat`` dispatchers (`llm_engine`).
- The ffmpeg-backed audio merge pipeline (`merger`, `ffmpeg_job`, `events`).
- The error taxonomy (`errors`) and environment configuration (`config`).
"""

from .errors import (
    EngineFailureError,
    EngineUnavailableError,
    InputFileNotFoundError,
    InvalidArgumentError,
    MergeCancelledError,
    MergeError,
    MultivoiceError,
    ProviderError,
    UnsupportedProviderError,
)
from .events import LoggingMergeObserver, MergeObserver
from .ffmpeg_job import HIGH_QUALITY_PROFILE, SIMPLE_PROFILE, EncodingProfile
from .llm_engine import ChatMessage, llm, llm_chat
from .merger import merge, merge_sync
from .stt_engine import TranscriptionResult, stt
from .tts_engine import tts

__all__ = [
    "tts",
    "stt",
    "TranscriptionResult",
    "llm",
    "llm_chat",
    "ChatMessage",
    "merge",
    "merge_sync",
    "EncodingProfile",
    "HIGH_QUALITY_PROFILE",
    "SIMPLE_PROFILE",
    "MergeObserver",
    "LoggingMergeObserver",
    "MultivoiceError",
    "InvalidArgumentError",
    "InputFileNotFoundError",
    "UnsupportedProviderError",
    "ProviderError",
    "MergeError",
    "EngineFailureError",
    "EngineUnavailableError",
    "MergeCancelledError",
]
