import pytest

from skillprobe.config import get_config
from skillprobe.interview.models import Settings
from skillprobe.interview.prompts import build_system_prompt


def test_config_requires_credentials(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("SKILLPROBE_API_URL", raising=False)

    with pytest.raises(ValueError):
        get_config()


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "key")
    monkeypatch.delenv("SKILLPROBE_API_URL", raising=False)
    monkeypatch.setenv("SKILLPROBE_LOG_LEVEL", "DEBUG")

    config = get_config()

    assert config.gemini_api_key == "key"
    assert config.log_level == "DEBUG"
    assert not config.uses_backend


@pytest.mark.parametrize("kwargs, message", [
    ({"job_role": ""}, "Please enter a job role"),
    ({"job_role": "Dev", "voice_name": "Robot"}, "Unknown voice"),
    ({"job_role": "Dev", "language_code": "xx-XX"}, "Unsupported language"),
])
def test_settings_validation(kwargs, message):
    with pytest.raises(ValueError, match=message):
        Settings(**kwargs).validate()


def test_system_prompt_names_the_role():
    prompt = build_system_prompt(Settings(job_role="  Site Reliability Engineer "))
    assert "for a Site Reliability Engineer position" in prompt
    assert prompt.startswith("You are an AI interviewer")


def test_setup_logging_creates_log_directory(tmp_path):
    import logging

    from skillprobe.utils import setup_logging

    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        path = setup_logging(str(tmp_path / "logs" / "interview.log"), level="info")
        logging.getLogger("session").info("hello")
        for handler in root.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "logs" / "interview.log").read_text()
        assert path.endswith("interview.log")
        assert logging.getLogger("websockets").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
