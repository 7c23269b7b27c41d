from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

from .errors import (
    InputFileNotFoundError,
    InvalidArgumentError,
    ProviderError,
    UnsupportedProviderError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "TranscriptionOptions",
    "TranscriptionResult",
    "SttEngine",
    "DeepgramSttEngine",
    "AssemblyAISttEngine",
    "STT_ENGINES",
    "create_stt_engine",
    "is_url",
    "write_transcription",
    "stt",
]

_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


@dataclass
class TranscriptionOptions:
    model: Optional[str] = None
    smart_format: bool = True
    detect_language: bool = True
    punctuate: bool = True
    diarize: bool = False
    channels: int = 1


@dataclass
class TranscriptionResult:
    transcript: str
    confidence: float
    words: List[Dict[str, Any]]
    full_result: Any
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_url(source: str) -> bool:
    return bool(_URL_PATTERN.match(source or ""))


class SttEngine(ABC):
    provider: str = ""
    default_model: str = ""

    @abstractmethod
    def transcribe(self, source: str, options: TranscriptionOptions) -> TranscriptionResult:
        """
        Transcribe a local file path or an HTTP(S) URL.
        """

    def descriptor(self) -> str:
        return self.__class__.__name__


class DeepgramSttEngine(SttEngine):
    provider = "deepgram"
    default_model = "nova-3"

    def __init__(self, *, api_key: str, client: Optional[object] = None) -> None:
        try:
            from deepgram import DeepgramClient  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "deepgram-sdk is required for DeepgramSttEngine but is not installed."
            ) from exc

        self._client = client or DeepgramClient(api_key)

    def transcribe(self, source: str, options: TranscriptionOptions) -> TranscriptionResult:
        model = options.model or self.default_model
        request_options = {
            "model": model,
            "smart_format": options.smart_format,
            "detect_language": options.detect_language,
            "punctuate": options.punctuate,
            "diarize": options.diarize,
            "channels": options.channels,
        }
        listener = self._client.listen.rest.v("1")

        if is_url(source):
            logger.info("Transcribing remote audio from URL: %s (model %s)", source, model)
            method, payload = listener.transcribe_url, {"url": source}
        else:
            path = Path(source)
            if not path.is_file():
                raise InputFileNotFoundError(path)
            logger.info("Transcribing local audio file: %s (model %s)", source, model)
            method, payload = listener.transcribe_file, {"buffer": path.read_bytes()}

        try:
            response = method(payload, request_options)
        except Exception as exc:
            logger.error("Deepgram STT error: %s", exc)
            raise ProviderError(self.provider, str(exc)) from exc

        result = response.to_dict()
        channel = ((result.get("results") or {}).get("channels") or [{}])[0]
        alternative = (channel.get("alternatives") or [{}])[0]
        metadata = result.get("metadata") or {}

        logger.info("Transcription completed successfully")
        return TranscriptionResult(
            transcript=alternative.get("transcript") or "",
            confidence=alternative.get("confidence") or 0,
            words=list(alternative.get("words") or []),
            full_result=result,
            metadata={
                "model": model,
                "language": channel.get("detected_language") or options.detect_language,
                "duration": metadata.get("duration"),
                "channels": metadata.get("channels"),
                "provider": self.provider,
            },
        )


class AssemblyAISttEngine(SttEngine):
    """
    AssemblyAI transcription. The speech model is fixed to ``slam-1``; the
    ``model`` option is ignored.
    """

    provider = "assemblyai"
    default_model = "slam-1"

    def __init__(self, *, api_key: str, transcriber: Optional[object] = None) -> None:
        try:
            import assemblyai as aai  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "assemblyai is required for AssemblyAISttEngine but is not installed."
            ) from exc

        if transcriber is None:
            aai.settings.api_key = api_key
            transcriber = aai.Transcriber(
                config=aai.TranscriptionConfig(speech_model=self.default_model)
            )
        self._transcriber = transcriber

    def transcribe(self, source: str, options: TranscriptionOptions) -> TranscriptionResult:
        if not is_url(source) and not Path(source).is_file():
            raise InputFileNotFoundError(source)

        logger.info("Transcribing audio with AssemblyAI: %s (model %s)", source, self.default_model)
        try:
            transcript = self._transcriber.transcribe(source)
        except Exception as exc:
            logger.error("AssemblyAI STT error: %s", exc)
            raise ProviderError(self.provider, str(exc)) from exc

        status = _status_value(transcript.status)
        if status == "error":
            raise ProviderError(self.provider, f"AssemblyAI transcription failed: {transcript.error}")
        if status != "completed":
            raise ProviderError(self.provider, f"Transcription failed with status: {status}")

        full_result = getattr(transcript, "json_response", None) or {}
        logger.info("Transcription completed successfully")
        return TranscriptionResult(
            transcript=transcript.text or "",
            confidence=transcript.confidence or 0,
            words=[_word_to_dict(word) for word in transcript.words or []],
            full_result=full_result,
            metadata={
                "model": self.default_model,
                "language": full_result.get("language_code") or "auto",
                "duration": getattr(transcript, "audio_duration", None),
                "channels": 1,
                "provider": self.provider,
            },
        )


STT_ENGINES: Dict[str, Type[SttEngine]] = {
    "deepgram": DeepgramSttEngine,
    "assemblyai": AssemblyAISttEngine,
}


def create_stt_engine(provider: str, **options) -> SttEngine:
    engine_cls = STT_ENGINES.get((provider or "").lower())
    if engine_cls is None:
        raise UnsupportedProviderError("STT", provider, STT_ENGINES)
    return engine_cls(**options)


def write_transcription(
    output_path: Path,
    result: TranscriptionResult,
    *,
    full_response: bool,
) -> None:
    payload = result.to_dict() if full_response else {"transcript": result.transcript}
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, default=str)


def stt(
    provider: str,
    api_key: str,
    audio_file: str,
    output_file: Optional[Union[str, Path]] = "transcription.json",
    model: Optional[str] = None,
    smart_format: bool = True,
    detect_language: bool = True,
    punctuate: bool = True,
    diarize: bool = False,
    channels: int = 1,
    full_response: bool = False,
    **engine_options,
) -> Union[str, TranscriptionResult]:
    """
    Transcribe a local file or URL. Returns the transcript text, or the full
    :class:`TranscriptionResult` when ``full_response`` is set.
    """
    if not provider:
        raise InvalidArgumentError("Missing required parameter: provider")
    if not api_key:
        raise InvalidArgumentError("Missing required parameter: api_key")
    if not audio_file:
        raise InvalidArgumentError("audio_file is required (local file path or HTTP URL)")

    engine = create_stt_engine(provider, api_key=api_key, **engine_options)
    options = TranscriptionOptions(
        model=model,
        smart_format=smart_format,
        detect_language=detect_language,
        punctuate=punctuate,
        diarize=diarize,
        channels=channels,
    )
    result = engine.transcribe(str(audio_file), options)

    if output_file:
        output_path = Path(output_file)
        try:
            write_transcription(output_path, result, full_response=full_response)
            logger.info("Transcription results saved to: %s", output_path)
        except OSError as exc:
            logger.warning("Failed to save transcription to file: %s", exc)

    return result if full_response else result.transcript


def _status_value(status: Any) -> str:
    return str(getattr(status, "value", status))


def _word_to_dict(word: Any) -> Dict[str, Any]:
    if isinstance(word, dict):
        return word
    return {
        "word": word.text,
        "start": word.start,
        "end": word.end,
        "confidence": word.confidence,
        "punctuated_word": word.text,
    }
