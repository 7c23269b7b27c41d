from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Type, Union

from .errors import InvalidArgumentError, ProviderError, UnsupportedProviderError

logger = logging.getLogger(__name__)

__all__ = [
    "ChatMessage",
    "LlmEngine",
    "OpenAILlmEngine",
    "GeminiLlmEngine",
    "LLM_ENGINES",
    "create_llm_engine",
    "llm",
    "llm_chat",
]

VALID_ROLES = ("system", "user", "assistant")

LlmResult = Union[str, Iterator[str]]


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    @classmethod
    def coerce(cls, message: Union["ChatMessage", Mapping[str, str]]) -> "ChatMessage":
        if isinstance(message, ChatMessage):
            return message
        try:
            role, content = message["role"], message["content"]
        except (KeyError, TypeError) as exc:
            raise InvalidArgumentError(f"Messages need 'role' and 'content': {message!r}") from exc
        if role not in VALID_ROLES:
            raise InvalidArgumentError(f"Unknown message role {role!r}; expected one of {VALID_ROLES}.")
        return cls(role=role, content=content)


class LlmEngine(ABC):
    provider: str = ""
    default_model: str = ""

    def __init__(self, *, model: Optional[str] = None) -> None:
        self.model = model or self.default_model

    @abstractmethod
    def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        stream: bool = False,
    ) -> LlmResult:
        """
        Return the completion text, or an iterator of text fragments when ``stream`` is set.
        """

    def descriptor(self) -> str:
        return self.__class__.__name__

    def _require_text(self, text: Optional[str]) -> str:
        if not text:
            raise ProviderError(self.provider, f"No response generated from {self.descriptor()}.")
        return text


class OpenAILlmEngine(LlmEngine):
    provider = "openai"
    default_model = "gpt-4o-mini"

    def __init__(self, *, api_key: str, model: Optional[str] = None, client: Optional[object] = None) -> None:
        try:
            import openai  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("openai is required for OpenAILlmEngine but is not installed.") from exc

        super().__init__(model=model)
        self._client = client or openai.OpenAI(api_key=api_key)

    def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        stream: bool = False,
    ) -> LlmResult:
        params: Dict[str, object] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "stream": stream,
        }
        if max_tokens:
            params["max_tokens"] = max_tokens

        logger.info("Generating response with OpenAI %s...", self.model)
        try:
            response = self._client.chat.completions.create(**params)
        except Exception as exc:
            logger.error("OpenAI LLM error: %s", exc)
            raise ProviderError(self.provider, str(exc)) from exc

        if stream:
            return _openai_fragments(response)

        choices = getattr(response, "choices", None) or []
        text = self._require_text(choices[0].message.content if choices else None)
        logger.info("OpenAI response generated successfully")
        return text


class GeminiLlmEngine(LlmEngine):
    """
    Gemini text generation with ``google-genai``. System messages become the
    system instruction and assistant turns are sent with the ``model`` role.
    """

    provider = "gemini"
    default_model = "gemini-2.0-flash-exp"

    def __init__(self, *, api_key: str, model: Optional[str] = None, client: Optional[object] = None) -> None:
        try:
            from google import genai  # type: ignore
            from google.genai import types  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "google-genai is required for GeminiLlmEngine but is not installed."
            ) from exc

        super().__init__(model=model)
        self._client = client or genai.Client(api_key=api_key)
        self._types = types

    def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        stream: bool = False,
    ) -> LlmResult:
        types = self._types
        system_parts = [m.content for m in messages if m.role == "system"]
        contents = [
            types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[types.Part.from_text(text=m.content)],
            )
            for m in messages
            if m.role != "system"
        ]
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            system_instruction="\n\n".join(system_parts) or None,
        )

        logger.info("Generating response with Gemini %s...", self.model)
        try:
            if stream:
                chunks = self._client.models.generate_content_stream(
                    model=self.model, contents=contents, config=config
                )
                return _gemini_fragments(chunks)
            response = self._client.models.generate_content(
                model=self.model, contents=contents, config=config
            )
        except Exception as exc:
            logger.error("Gemini LLM error: %s", exc)
            raise ProviderError(self.provider, str(exc)) from exc

        text = self._require_text(response.text)
        logger.info("Gemini response generated successfully")
        return text


LLM_ENGINES: Dict[str, Type[LlmEngine]] = {
    "openai": OpenAILlmEngine,
    "gemini": GeminiLlmEngine,
}


def create_llm_engine(provider: str, **options) -> LlmEngine:
    engine_cls = LLM_ENGINES.get((provider or "").lower())
    if engine_cls is None:
        raise UnsupportedProviderError("LLM", provider, LLM_ENGINES)
    return engine_cls(**options)


def llm(
    provider: str = "openai",
    api_key: Optional[str] = None,
    text: Optional[str] = None,
    model: Optional[str] = None,
    system_prompt: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: Optional[int] = None,
    stream: bool = False,
    client: Optional[object] = None,
) -> LlmResult:
    """Generate text for a single prompt, optionally steered by a system prompt."""
    if not api_key or not text:
        raise InvalidArgumentError("Missing required parameters: api_key or text.")

    messages: List[ChatMessage] = []
    if system_prompt:
        messages.append(ChatMessage("system", system_prompt))
    messages.append(ChatMessage("user", text))
    engine = _build_engine(provider, api_key, model, client)
    return engine.generate(messages, temperature=temperature, max_tokens=max_tokens, stream=stream)


def llm_chat(
    provider: str = "openai",
    api_key: Optional[str] = None,
    messages: Optional[Iterable[Union[ChatMessage, Mapping[str, str]]]] = None,
    model: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: Optional[int] = None,
    stream: bool = False,
    client: Optional[object] = None,
) -> LlmResult:
    """Generate the next assistant turn for a conversation history."""
    if not api_key or messages is None or isinstance(messages, (str, bytes)):
        raise InvalidArgumentError("Missing required parameters: api_key or messages list.")

    history = [ChatMessage.coerce(message) for message in messages]
    if not history:
        raise InvalidArgumentError("messages must contain at least one message.")
    engine = _build_engine(provider, api_key, model, client)
    return engine.generate(history, temperature=temperature, max_tokens=max_tokens, stream=stream)


def _build_engine(provider: str, api_key: str, model: Optional[str], client: Optional[object]) -> LlmEngine:
    options: Dict[str, object] = {"api_key": api_key, "model": model}
    if client is not None:
        options["client"] = client
    return create_llm_engine(provider, **options)


def _openai_fragments(chunks: Iterable) -> Iterator[str]:
    try:
        for chunk in chunks:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content
    except Exception as exc:
        logger.error("OpenAI LLM stream error: %s", exc)
        raise ProviderError(OpenAILlmEngine.provider, str(exc)) from exc


def _gemini_fragments(chunks: Iterable) -> Iterator[str]:
    try:
        for chunk in chunks:
            if chunk.text:
                yield chunk.text
    except Exception as exc:
        logger.error("Gemini LLM stream error: %s", exc)
        raise ProviderError(GeminiLlmEngine.provider, str(exc)) from exc
