from __future__ import annotations

import base64
import io
import logging
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Type, Union

from pydub import AudioSegment

from .errors import InvalidArgumentError, ProviderError, UnsupportedProviderError

logger = logging.getLogger(__name__)

__all__ = [
    "TtsEngine",
    "GeminiTtsEngine",
    "OpenAITtsEngine",
    "DeepgramTtsEngine",
    "GroqTtsEngine",
    "CartesiaTtsEngine",
    "MockTtsEngine",
    "TTS_ENGINES",
    "create_tts_engine",
    "tts",
]


class TtsEngine(ABC):
    """
    Thin abstraction over a text-to-speech vendor that writes one audio file per request.
    """

    provider: str = ""

    def __init__(self, *, voice: str, model: str = "", prompt: str = "") -> None:
        self.voice = voice
        self.model = model
        self.prompt = prompt

    @abstractmethod
    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        """
        Synthesize ``text`` and write the audio to ``output_path``.
        """

    def descriptor(self) -> str:
        return self.__class__.__name__

    def _wrap_error(self, exc: Exception) -> ProviderError:
        logger.error("%s TTS error: %s", self.provider, exc)
        return ProviderError(self.provider, str(exc))


class MockTtsEngine(TtsEngine):
    """
    Lightweight mock for tests. Generates silent segments of predictable lengths.
    """

    provider = "mock"

    def __init__(
        self,
        *,
        voice: str = "silence",
        model: str = "",
        prompt: str = "",
        durations_ms: Optional[Dict[str, int]] = None,
        base_duration_ms: int = 500,
        per_char_ms: int = 30,
        sample_rate: int = 24000,
        **_: object,
    ) -> None:
        super().__init__(voice=voice, model=model, prompt=prompt)
        self._durations_ms = durations_ms or {}
        self._base_duration_ms = base_duration_ms
        self._per_char_ms = per_char_ms
        self._sample_rate = sample_rate

    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        duration = self._durations_ms.get(
            text, self._base_duration_ms + max(0, len(text)) * self._per_char_ms
        )
        segment = AudioSegment.silent(duration=duration, frame_rate=self._sample_rate)
        segment.export(output_path, format=_format_for_path(output_path))
        return output_path


class GeminiTtsEngine(TtsEngine):
    """
    Google Gemini speech generation using the ``google-genai`` client.

    Gemini returns raw PCM, which is wrapped with pydub and exported in the
    format implied by the output file suffix.
    """

    provider = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        voice: str,
        model: str = "",
        prompt: str = "",
        client: Optional[object] = None,
        sample_rate: int = 24000,
    ) -> None:
        try:
            from google import genai  # type: ignore
            from google.genai import types  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "google-genai is required for GeminiTtsEngine but is not installed."
            ) from exc

        super().__init__(voice=voice, model=model or "gemini-2.5-flash-preview-tts", prompt=prompt)
        self._client = client or genai.Client(api_key=api_key)
        self._types = types
        self._sample_rate = sample_rate

    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        types = self._types
        logger.info("Generating audio with Gemini TTS using voice %r...", self.voice)
        contents = f"{self.prompt}\n\n{text}".strip()
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice)
                )
            ),
        )
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except Exception as exc:
            raise self._wrap_error(exc) from exc

        inline = _first_inline_data(response)
        if inline is None:
            raise ProviderError(self.provider, "No audio returned from Gemini.")

        data = inline.data
        if isinstance(data, str):
            data = base64.b64decode(data)
        mime = inline.mime_type or f"audio/L16;rate={self._sample_rate}"
        segment = _audio_bytes_to_segment(data, mime, default_rate=self._sample_rate)
        segment.export(output_path, format=_format_for_path(output_path))
        logger.info("Gemini audio saved to %s", output_path)
        return output_path


class OpenAITtsEngine(TtsEngine):
    provider = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        voice: str,
        model: str = "",
        prompt: str = "",
        client: Optional[object] = None,
    ) -> None:
        try:
            import openai  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("openai is required for OpenAITtsEngine but is not installed.") from exc

        super().__init__(voice=voice, model=model or "gpt-4o-mini-tts", prompt=prompt)
        self._client = client or openai.OpenAI(api_key=api_key)

    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        params = {"model": self.model, "voice": self.voice, "input": text}
        # Only the steerable model accepts instructions.
        if self.model == "gpt-4o-mini-tts" and self.prompt:
            params["instructions"] = self.prompt

        logger.debug("OpenAI speech params: %s", {k: v for k, v in params.items() if k != "input"})
        try:
            response = self._client.audio.speech.create(**params)
            audio_bytes = response.read()
        except Exception as exc:
            raise self._wrap_error(exc) from exc

        _write_audio(output_path, audio_bytes, self.provider)
        logger.info("OpenAI audio saved to %s", output_path)
        return output_path


class DeepgramTtsEngine(TtsEngine):
    """
    Deepgram Aura speech. The voice is the Aura model name, e.g. ``aura-2-luna-en``.
    """

    provider = "deepgram"

    def __init__(
        self,
        *,
        api_key: str,
        voice: str,
        model: str = "",
        prompt: str = "",
        client: Optional[object] = None,
    ) -> None:
        try:
            from deepgram import DeepgramClient  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "deepgram-sdk is required for DeepgramTtsEngine but is not installed."
            ) from exc

        super().__init__(voice=voice, model=model or voice, prompt=prompt)
        self._client = client or DeepgramClient(api_key)

    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        logger.info("Generating audio with Deepgram TTS...")
        try:
            self._client.speak.rest.v("1").save(
                str(output_path),
                {"text": text},
                {"model": self.model},
            )
        except Exception as exc:
            raise self._wrap_error(exc) from exc

        if not output_path.exists():
            raise ProviderError(self.provider, "No audio stream received from Deepgram.")
        logger.info("Deepgram audio saved to %s", output_path)
        return output_path


class GroqTtsEngine(TtsEngine):
    provider = "groq"

    def __init__(
        self,
        *,
        api_key: str,
        voice: str,
        model: str = "",
        prompt: str = "",
        client: Optional[object] = None,
    ) -> None:
        try:
            import groq  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("groq is required for GroqTtsEngine but is not installed.") from exc

        super().__init__(voice=voice, model=model or "playai-tts", prompt=prompt)
        self._client = client or groq.Groq(api_key=api_key)

    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        logger.info("Generating audio with Groq PlayAI TTS using voice %r...", self.voice)
        try:
            response = self._client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                response_format="wav",
                input=text,
            )
            audio_bytes = response.read()
        except Exception as exc:
            raise self._wrap_error(exc) from exc

        _write_audio(output_path, audio_bytes, self.provider)
        logger.info("Groq PlayAI audio saved to %s", output_path)
        return output_path


class CartesiaTtsEngine(TtsEngine):
    """
    Cartesia Sonic speech. The voice is a Cartesia voice ID.
    """

    provider = "cartesia"

    def __init__(
        self,
        *,
        api_key: str,
        voice: str,
        model: str = "",
        prompt: str = "",
        client: Optional[object] = None,
        language: str = "en",
        sample_rate: int = 44100,
    ) -> None:
        try:
            from cartesia import Cartesia  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("cartesia is required for CartesiaTtsEngine but is not installed.") from exc

        super().__init__(voice=voice, model=model or "sonic-2", prompt=prompt)
        self._client = client or Cartesia(api_key=api_key)
        self._language = language
        self._sample_rate = sample_rate

    def output_format(self, output_path: Path) -> Dict[str, object]:
        if _format_for_path(output_path) == "wav":
            return {"container": "wav", "encoding": "pcm_s16le", "sample_rate": self._sample_rate}
        return {"container": "mp3", "sample_rate": self._sample_rate, "bit_rate": 128000}

    def synthesize_to_file(self, text: str, output_path: Path) -> Path:
        logger.info("Generating audio with Cartesia TTS using voice ID %r...", self.voice)
        try:
            audio = self._client.tts.bytes(
                model_id=self.model,
                transcript=text,
                voice={"mode": "id", "id": self.voice},
                language=self._language,
                output_format=self.output_format(output_path),
            )
            audio_bytes = audio if isinstance(audio, (bytes, bytearray)) else b"".join(audio)
        except Exception as exc:
            raise self._wrap_error(exc) from exc

        _write_audio(output_path, audio_bytes, self.provider)
        logger.info("Cartesia audio saved to %s", output_path)
        return output_path


TTS_ENGINES: Dict[str, Type[TtsEngine]] = {
    "gemini": GeminiTtsEngine,
    "openai": OpenAITtsEngine,
    "deepgram": DeepgramTtsEngine,
    "groq": GroqTtsEngine,
    "cartesia": CartesiaTtsEngine,
    "mock": MockTtsEngine,
}


def create_tts_engine(provider: str, **options) -> TtsEngine:
    engine_cls = TTS_ENGINES.get((provider or "").lower())
    if engine_cls is None:
        raise UnsupportedProviderError("TTS", provider, TTS_ENGINES)
    return engine_cls(**options)


def tts(
    provider: str,
    api_key: str,
    text: str,
    voice: str,
    output_file: Union[str, Path] = "output.mp3",
    model: str = "",
    prompt: str = "",
    client: Optional[object] = None,
) -> Path:
    """
    Generate speech from ``text`` with the chosen provider and save it to ``output_file``.
    """
    if not provider or not api_key or not text or not voice:
        raise InvalidArgumentError("Missing required parameters: provider, api_key, text, or voice.")

    options: Dict[str, object] = {"api_key": api_key, "voice": voice, "model": model, "prompt": prompt}
    if client is not None:
        options["client"] = client
    engine = create_tts_engine(provider, **options)
    return engine.synthesize_to_file(text, Path(output_file))


def _first_inline_data(response: object):
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline and inline.data:
                return inline
    return None


def _write_audio(output_path: Path, audio_bytes: bytes, provider: str) -> None:
    if not audio_bytes:
        raise ProviderError(provider, "Provider returned empty audio.")
    output_path.write_bytes(audio_bytes)


def _format_for_path(path: Path) -> str:
    return path.suffix.lstrip(".").lower() or "wav"


def _audio_bytes_to_segment(data: bytes, mime_type: str, *, default_rate: int) -> AudioSegment:
    mime_type = mime_type or "audio/wav"
    if mime_type.startswith("audio/L"):
        params = _parse_linear_pcm_mime(mime_type, default_rate=default_rate)
        return AudioSegment(
            data=data,
            sample_width=params["sample_width"],
            frame_rate=params["rate"],
            channels=params["channels"],
        )

    guessed = (mimetypes.guess_extension(mime_type) or "").lstrip(".")
    fmt = guessed or mime_type.split("/")[-1]
    return AudioSegment.from_file(io.BytesIO(data), format=fmt)


def _parse_linear_pcm_mime(mime_type: str, *, default_rate: int = 24000) -> Dict[str, int]:
    params: Dict[str, int] = {"rate": default_rate, "sample_width": 2, "channels": 1}
    for fragment in (fragment.strip() for fragment in mime_type.split(";")):
        lowered = fragment.lower()
        if lowered.startswith("rate="):
            try:
                params["rate"] = int(fragment.split("=", 1)[1])
            except ValueError:
                logger.warning("Unable to parse rate from mime type %s", mime_type)
        elif lowered.startswith("channels="):
            try:
                params["channels"] = int(fragment.split("=", 1)[1])
            except ValueError:
                logger.warning("Unable to parse channels from mime type %s", mime_type)
        elif lowered.startswith("audio/l"):
            try:
                bits = int(fragment.split("L", 1)[1])
                params["sample_width"] = max(1, bits // 8)
            except ValueError:
                logger.warning("Unable to parse bits from mime type %s", mime_type)
    return params
