import json
from types import SimpleNamespace

import pytest

from multivoice.errors import InputFileNotFoundError, ProviderError, UnsupportedProviderError
from multivoice.stt_engine import TranscriptionResult, is_url, stt

DEEPGRAM_RESULT = {
    "metadata": {"duration": 3.5, "channels": 1},
    "results": {
        "channels": [
            {
                "detected_language": "en",
                "alternatives": [
                    {
                        "transcript": "hello world",
                        "confidence": 0.98,
                        "words": [
                            {
                                "word": "hello",
                                "start": 0.1,
                                "end": 0.4,
                                "confidence": 0.99,
                                "punctuated_word": "Hello",
                            }
                        ],
                    }
                ],
            }
        ]
    },
}


class FakeDeepgramListener:
    def __init__(self):
        self.calls = []

    def v(self, version):
        return self

    def _respond(self):
        return SimpleNamespace(to_dict=lambda: DEEPGRAM_RESULT)

    def transcribe_url(self, source, options):
        self.calls.append(("url", source, options))
        return self._respond()

    def transcribe_file(self, source, options):
        self.calls.append(("file", source, options))
        return self._respond()


@pytest.fixture
def deepgram_client():
    listener = FakeDeepgramListener()
    return SimpleNamespace(listen=SimpleNamespace(rest=listener)), listener


def test_is_url():
    assert is_url("https://example.com/a.mp3")
    assert is_url("HTTP://example.com/a.mp3")
    assert not is_url("recordings/https.mp3")


def test_deepgram_local_file_returns_transcript(tmp_path, deepgram_client):
    client, listener = deepgram_client
    audio = tmp_path / "speech.wav"
    audio.write_bytes(b"RIFF")
    output = tmp_path / "transcription.json"

    transcript = stt("deepgram", "key", str(audio), output_file=output, client=client)

    assert transcript == "hello world"
    kind, source, options = listener.calls[0]
    assert kind == "file"
    assert source == {"buffer": b"RIFF"}
    assert options["model"] == "nova-3"
    assert options["smart_format"] is True
    assert json.loads(output.read_text(encoding="utf-8")) == {"transcript": "hello world"}


def test_deepgram_url_full_response(tmp_path, deepgram_client):
    client, listener = deepgram_client
    output = tmp_path / "full.json"

    result = stt(
        "deepgram",
        "key",
        "https://example.com/speech.mp3",
        output_file=output,
        model="nova-2",
        diarize=True,
        full_response=True,
        client=client,
    )

    assert isinstance(result, TranscriptionResult)
    assert listener.calls[0][0] == "url"
    assert listener.calls[0][2]["diarize"] is True
    assert result.confidence == pytest.approx(0.98)
    assert result.words[0]["punctuated_word"] == "Hello"
    assert result.metadata == {
        "model": "nova-2",
        "language": "en",
        "duration": 3.5,
        "channels": 1,
        "provider": "deepgram",
    }
    saved = json.loads(output.read_text(encoding="utf-8"))
    assert saved["transcript"] == "hello world"
    assert saved["metadata"]["provider"] == "deepgram"


def test_deepgram_missing_local_file(tmp_path, deepgram_client):
    client, listener = deepgram_client

    with pytest.raises(InputFileNotFoundError):
        stt("deepgram", "key", str(tmp_path / "missing.wav"), output_file=None, client=client)

    assert listener.calls == []


def test_output_write_failure_is_not_fatal(tmp_path, deepgram_client):
    client, _ = deepgram_client
    audio = tmp_path / "speech.wav"
    audio.write_bytes(b"RIFF")

    transcript = stt(
        "deepgram",
        "key",
        str(audio),
        output_file=tmp_path / "no-such-dir" / "out.json",
        client=client,
    )

    assert transcript == "hello world"


def test_unsupported_stt_provider():
    with pytest.raises(UnsupportedProviderError):
        stt("whisper", "key", "https://example.com/a.mp3")


class FakeTranscriber:
    def __init__(self, transcript):
        self.transcript = transcript
        self.sources = []

    def transcribe(self, source):
        self.sources.append(source)
        return self.transcript


def test_assemblyai_completed_transcript(tmp_path):
    words = [SimpleNamespace(text="Hi.", start=0, end=300, confidence=0.9)]
    transcriber = FakeTranscriber(
        SimpleNamespace(
            status="completed",
            text="Hi.",
            confidence=0.9,
            words=words,
            audio_duration=1,
            json_response={"language_code": "en_us"},
            error=None,
        )
    )

    result = stt(
        "assemblyai",
        "key",
        "https://example.com/hi.mp3",
        output_file=None,
        full_response=True,
        transcriber=transcriber,
    )

    assert result.transcript == "Hi."
    assert result.words == [
        {"word": "Hi.", "start": 0, "end": 300, "confidence": 0.9, "punctuated_word": "Hi."}
    ]
    assert result.metadata["model"] == "slam-1"
    assert result.metadata["language"] == "en_us"
    assert transcriber.sources == ["https://example.com/hi.mp3"]


def test_assemblyai_error_status(tmp_path):
    transcriber = FakeTranscriber(SimpleNamespace(status="error", error="bad audio"))

    with pytest.raises(ProviderError) as excinfo:
        stt("assemblyai", "key", "https://example.com/x.mp3", output_file=None, transcriber=transcriber)

    assert "bad audio" in str(excinfo.value)
