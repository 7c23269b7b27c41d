"""
Environment-driven configuration.

API keys and the ffmpeg location are read from the process environment, which
may be populated from a ``.env`` file through :func:`load_environment`.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv
from pydub.utils import which

logger = logging.getLogger(__name__)

__all__ = [
    "API_KEY_ENV_VARS",
    "FFMPEG_PATH_ENV_VAR",
    "load_environment",
    "resolve_api_key",
    "resolve_ffmpeg_path",
]

FFMPEG_PATH_ENV_VAR = "MULTIVOICE_FFMPEG_PATH"

API_KEY_ENV_VARS: Dict[str, Tuple[str, ...]] = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_GENAI_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
    "deepgram": ("DEEPGRAM_API_KEY",),
    "groq": ("GROQ_API_KEY",),
    "cartesia": ("CARTESIA_API_KEY",),
    "assemblyai": ("ASSEMBLYAI_API_KEY",),
}


def load_environment(dotenv_path: Optional[str] = None) -> bool:
    loaded = load_dotenv(dotenv_path)
    if loaded:
        logger.debug("Loaded environment from %s", dotenv_path or ".env")
    return loaded


def resolve_api_key(provider: str, explicit: Optional[str] = None) -> Optional[str]:
    """
    Return ``explicit`` when given, otherwise the first non-empty environment
    variable registered for ``provider``.
    """
    if explicit:
        return explicit
    for name in API_KEY_ENV_VARS.get((provider or "").lower(), ()):
        value = os.environ.get(name)
        if value:
            return value
    return None


def resolve_ffmpeg_path(explicit: Optional[str] = None) -> Optional[str]:
    """
    Locate the ffmpeg executable: explicit argument, then the
    ``MULTIVOICE_FFMPEG_PATH`` variable, then ``ffmpeg`` on ``PATH``.
    Returns ``None`` when nothing is found.
    """
    if explicit:
        return explicit
    configured = os.environ.get(FFMPEG_PATH_ENV_VAR)
    if configured:
        return configured
    return which("ffmpeg")
