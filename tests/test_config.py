from multivoice import config


def test_explicit_api_key_wins(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "from-env")

    assert config.resolve_api_key("openai", "explicit") == "explicit"
    assert config.resolve_api_key("OpenAI") == "from-env"


def test_gemini_accepts_fallback_variable(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_GENAI_API_KEY", "genai-key")

    assert config.resolve_api_key("gemini") == "genai-key"


def test_unknown_provider_has_no_key(monkeypatch):
    assert config.resolve_api_key("mock") is None


def test_ffmpeg_path_precedence(monkeypatch):
    monkeypatch.setattr(config, "which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.delenv(config.FFMPEG_PATH_ENV_VAR, raising=False)
    assert config.resolve_ffmpeg_path() == "/usr/bin/ffmpeg"

    monkeypatch.setenv(config.FFMPEG_PATH_ENV_VAR, "/opt/ffmpeg/bin/ffmpeg")
    assert config.resolve_ffmpeg_path() == "/opt/ffmpeg/bin/ffmpeg"
    assert config.resolve_ffmpeg_path("./ffmpeg") == "./ffmpeg"


def test_load_environment_reads_dotenv(tmp_path, monkeypatch):
    monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("DEEPGRAM_API_KEY=dg-key\n", encoding="utf-8")

    assert config.load_environment(str(env_file))
    assert config.resolve_api_key("deepgram") == "dg-key"
