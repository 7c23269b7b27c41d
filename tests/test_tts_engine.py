from pathlib import Path
from types import SimpleNamespace

import pytest
from pydub import AudioSegment

from multivoice.errors import InvalidArgumentError, ProviderError, UnsupportedProviderError
from multivoice.tts_engine import (
    CartesiaTtsEngine,
    MockTtsEngine,
    _parse_linear_pcm_mime,
    create_tts_engine,
    tts,
)


class FakeBinaryResponse:
    def __init__(self, data):
        self._data = data

    def read(self):
        return self._data


class FakeSpeech:
    def __init__(self, data=b"RIFFfake"):
        self.calls = []
        self._data = data

    def create(self, **params):
        self.calls.append(params)
        return FakeBinaryResponse(self._data)


def fake_speech_client(data=b"RIFFfake"):
    speech = FakeSpeech(data)
    return SimpleNamespace(audio=SimpleNamespace(speech=speech)), speech


def test_mock_engine_writes_predictable_duration(tmp_path):
    engine = MockTtsEngine(durations_ms={"hello": 1200})
    output = engine.synthesize_to_file("hello", tmp_path / "hello.wav")

    assert len(AudioSegment.from_file(output)) == pytest.approx(1200, abs=5)


def test_tts_dispatches_by_provider_name(tmp_path):
    output = tts("MOCK", "unused", "hello there", "silence", output_file=tmp_path / "out.wav")

    assert output == tmp_path / "out.wav"
    assert output.exists()


def test_tts_requires_core_parameters(tmp_path):
    with pytest.raises(InvalidArgumentError):
        tts("openai", "", "hello", "nova", output_file=tmp_path / "out.mp3")
    with pytest.raises(InvalidArgumentError):
        tts("openai", "key", "hello", "", output_file=tmp_path / "out.mp3")


def test_unknown_provider_is_rejected():
    with pytest.raises(UnsupportedProviderError) as excinfo:
        create_tts_engine("polly", api_key="key", voice="Joanna")

    assert "gemini" in str(excinfo.value)


def test_openai_sends_instructions_only_for_steerable_model(tmp_path):
    client, speech = fake_speech_client(b"ID3audio")

    tts(
        "openai",
        "key",
        "Hello!",
        "nova",
        output_file=tmp_path / "steer.mp3",
        model="gpt-4o-mini-tts",
        prompt="Cheerful.",
        client=client,
    )
    tts(
        "openai",
        "key",
        "Hello!",
        "nova",
        output_file=tmp_path / "plain.mp3",
        model="tts-1",
        prompt="Cheerful.",
        client=client,
    )

    assert speech.calls[0]["instructions"] == "Cheerful."
    assert "instructions" not in speech.calls[1]
    assert (tmp_path / "steer.mp3").read_bytes() == b"ID3audio"


def test_openai_failures_surface_as_provider_error(tmp_path):
    class BrokenSpeech:
        def create(self, **params):
            raise RuntimeError("quota exceeded")

    client = SimpleNamespace(audio=SimpleNamespace(speech=BrokenSpeech()))

    with pytest.raises(ProviderError) as excinfo:
        tts("openai", "key", "Hello", "nova", output_file=tmp_path / "out.mp3", client=client)

    assert excinfo.value.provider == "openai"
    assert "quota exceeded" in str(excinfo.value)


def test_groq_requests_wav_with_default_model(tmp_path):
    client, speech = fake_speech_client(b"RIFFgroq")

    tts("groq", "key", "Hi", "Fritz-PlayAI", output_file=tmp_path / "g.wav", client=client)

    assert speech.calls[0]["model"] == "playai-tts"
    assert speech.calls[0]["response_format"] == "wav"
    assert (tmp_path / "g.wav").read_bytes() == b"RIFFgroq"


def test_empty_audio_is_an_error(tmp_path):
    client, _ = fake_speech_client(b"")

    with pytest.raises(ProviderError):
        tts("groq", "key", "Hi", "Fritz-PlayAI", output_file=tmp_path / "g.wav", client=client)


def test_deepgram_uses_voice_as_model(tmp_path):
    calls = []

    class FakeSpeakRest:
        def v(self, version):
            assert version == "1"
            return self

        def save(self, filename, source, options):
            calls.append((source, options))
            Path(filename).write_bytes(b"ID3")

    client = SimpleNamespace(speak=SimpleNamespace(rest=FakeSpeakRest()))

    tts("deepgram", "key", "Hi", "aura-2-luna-en", output_file=tmp_path / "d.mp3", client=client)

    assert calls == [({"text": "Hi"}, {"model": "aura-2-luna-en"})]


def test_cartesia_picks_container_from_suffix(tmp_path):
    calls = []

    class FakeCartesiaTts:
        def bytes(self, **params):
            calls.append(params)
            return iter([b"ab", b"cd"])

    client = SimpleNamespace(tts=FakeCartesiaTts())
    engine = CartesiaTtsEngine(api_key="key", voice="voice-id", client=client)

    engine.synthesize_to_file("Hi", tmp_path / "c.mp3")
    engine.synthesize_to_file("Hi", tmp_path / "c.wav")

    assert calls[0]["model_id"] == "sonic-2"
    assert calls[0]["voice"] == {"mode": "id", "id": "voice-id"}
    assert calls[0]["output_format"]["container"] == "mp3"
    assert calls[0]["output_format"]["bit_rate"] == 128000
    assert calls[1]["output_format"]["container"] == "wav"
    assert (tmp_path / "c.mp3").read_bytes() == b"abcd"


def test_gemini_pcm_is_exported_as_wav(tmp_path):
    requests = []
    pcm = b"\x00\x00" * 24000  # one second of 16-bit mono at 24kHz

    class FakeModels:
        def generate_content(self, **params):
            requests.append(params)
            inline = SimpleNamespace(data=pcm, mime_type="audio/L16;codec=pcm;rate=24000")
            part = SimpleNamespace(inline_data=inline)
            return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])

    client = SimpleNamespace(models=FakeModels())

    output = tts(
        "gemini",
        "key",
        "Hello!",
        "iapetus",
        output_file=tmp_path / "g.wav",
        prompt="In a calm tone.",
        client=client,
    )

    segment = AudioSegment.from_file(output)
    assert segment.frame_rate == 24000
    assert len(segment) == pytest.approx(1000, abs=5)
    assert requests[0]["model"] == "gemini-2.5-flash-preview-tts"
    assert requests[0]["contents"] == "In a calm tone.\n\nHello!"


def test_gemini_without_audio_raises(tmp_path):
    class FakeModels:
        def generate_content(self, **params):
            return SimpleNamespace(candidates=[])

    client = SimpleNamespace(models=FakeModels())

    with pytest.raises(ProviderError):
        tts("gemini", "key", "Hello!", "iapetus", output_file=tmp_path / "g.wav", client=client)


def test_parse_linear_pcm_mime():
    params = _parse_linear_pcm_mime("audio/L16;codec=pcm;rate=24000;channels=2")

    assert params == {"rate": 24000, "sample_width": 2, "channels": 2}
