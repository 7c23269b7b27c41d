#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from multivoice.config import load_environment, resolve_api_key
from multivoice.errors import InvalidArgumentError
from multivoice.events import LoggingMergeObserver
from multivoice.ffmpeg_job import HIGH_QUALITY_PROFILE, SIMPLE_PROFILE
from multivoice.llm_engine import LLM_ENGINES, llm
from multivoice.merger import merge
from multivoice.stt_engine import STT_ENGINES, TranscriptionResult, stt
from multivoice.tts_engine import TTS_ENGINES, tts

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Multi-provider speech, transcription and audio merge tool.")
    parser.add_argument("--debug", action="store_true", help="Enable verbose logging.")
    parser.add_argument("--env-file", help="Optional .env file to load API keys from.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    tts_parser = subparsers.add_parser("tts", help="Synthesize speech to an audio file.")
    tts_parser.add_argument("--provider", required=True, choices=sorted(TTS_ENGINES), help="TTS provider.")
    tts_parser.add_argument("--text", required=True, help="Text to speak.")
    tts_parser.add_argument("--voice", required=True, help="Voice identifier (provider specific).")
    tts_parser.add_argument("--output", default="output.mp3", help="Output audio path.")
    tts_parser.add_argument("--model", default="", help="Model name (provider specific).")
    tts_parser.add_argument("--prompt", default="", help="Delivery instructions, where supported.")
    tts_parser.add_argument("--api-key", help="API key (defaults to <PROVIDER>_API_KEY env var).")

    stt_parser = subparsers.add_parser("stt", help="Transcribe a local file or URL.")
    stt_parser.add_argument("--provider", required=True, choices=sorted(STT_ENGINES), help="STT provider.")
    stt_parser.add_argument("--audio", required=True, help="Local audio path or HTTP(S) URL.")
    stt_parser.add_argument("--output", default="transcription.json", help="JSON results path.")
    stt_parser.add_argument("--model", help="Model name (Deepgram only).")
    stt_parser.add_argument("--diarize", action="store_true", help="Enable speaker diarization.")
    stt_parser.add_argument("--channels", type=int, default=1, help="Number of audio channels.")
    stt_parser.add_argument("--no-smart-format", action="store_true", help="Disable smart formatting.")
    stt_parser.add_argument("--no-punctuate", action="store_true", help="Disable punctuation.")
    stt_parser.add_argument("--full-response", action="store_true", help="Print and save the full result.")
    stt_parser.add_argument("--api-key", help="API key (defaults to <PROVIDER>_API_KEY env var).")

    llm_parser = subparsers.add_parser("llm", help="Generate text from a prompt.")
    llm_parser.add_argument("--provider", default="openai", choices=sorted(LLM_ENGINES), help="LLM provider.")
    llm_parser.add_argument("--text", required=True, help="Prompt text.")
    llm_parser.add_argument("--model", help="Model name.")
    llm_parser.add_argument("--system-prompt", help="System prompt.")
    llm_parser.add_argument("--temperature", type=float, default=0.7, help="Sampling temperature (0-2).")
    llm_parser.add_argument("--max-tokens", type=int, help="Maximum tokens to generate.")
    llm_parser.add_argument("--stream", action="store_true", help="Print the response as it streams.")
    llm_parser.add_argument("--api-key", help="API key (defaults to <PROVIDER>_API_KEY env var).")

    merge_parser = subparsers.add_parser("merge", help="Concatenate audio files into one.")
    merge_parser.add_argument("inputs", nargs="+", help="Input audio files, in playback order.")
    merge_parser.add_argument("--output", required=True, help="Merged output path.")
    merge_parser.add_argument("--simple", action="store_true", help="Concat only, no loudness normalization.")
    merge_parser.add_argument("--ffmpeg", help="Path to the ffmpeg executable.")
    merge_parser.add_argument("--timeout", type=float, help="Abort the merge after this many seconds.")

    return parser.parse_args(argv)


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def require_api_key(provider: str, explicit: str | None) -> str:
    if provider == "mock":
        return explicit or "mock"
    api_key = resolve_api_key(provider, explicit)
    if not api_key:
        raise InvalidArgumentError(
            f"{provider} requires an API key (use --api-key or {provider.upper()}_API_KEY env var)."
        )
    return api_key


def run_tts(args: argparse.Namespace) -> int:
    output = tts(
        provider=args.provider,
        api_key=require_api_key(args.provider, args.api_key),
        text=args.text,
        voice=args.voice,
        output_file=args.output,
        model=args.model,
        prompt=args.prompt,
    )
    print(output)
    return 0


def run_stt(args: argparse.Namespace) -> int:
    result = stt(
        provider=args.provider,
        api_key=require_api_key(args.provider, args.api_key),
        audio_file=args.audio,
        output_file=args.output,
        model=args.model,
        smart_format=not args.no_smart_format,
        punctuate=not args.no_punctuate,
        diarize=args.diarize,
        channels=args.channels,
        full_response=args.full_response,
    )
    if isinstance(result, TranscriptionResult):
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str))
    else:
        print(result)
    return 0


def run_llm(args: argparse.Namespace) -> int:
    result = llm(
        provider=args.provider,
        api_key=require_api_key(args.provider, args.api_key),
        text=args.text,
        model=args.model,
        system_prompt=args.system_prompt,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        stream=args.stream,
    )
    if isinstance(result, str):
        print(result)
    else:
        for fragment in result:
            sys.stdout.write(fragment)
            sys.stdout.flush()
        sys.stdout.write("\n")
    return 0


def run_merge(args: argparse.Namespace) -> int:
    asyncio.run(
        merge(
            args.inputs,
            Path(args.output),
            profile=SIMPLE_PROFILE if args.simple else HIGH_QUALITY_PROFILE,
            observer=LoggingMergeObserver(),
            ffmpeg_path=args.ffmpeg,
            timeout=args.timeout,
        )
    )
    return 0


COMMANDS = {
    "tts": run_tts,
    "stt": run_stt,
    "llm": run_llm,
    "merge": run_merge,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.debug)
    load_environment(args.env_file)
    return COMMANDS[args.command](args)


def cli() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.error("Interrupted by user.")
        sys.exit(1)
    except Exception as exc:
        logger.exception("Fatal error: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    cli()
