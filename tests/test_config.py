# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from trimatrix.config import Settings
from trimatrix.logging_setup import LOG_FILE_NAME, _ConsoleNoiseFilter, setup_logging


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "TRIMATRIX_OPENROUTER_API_KEY",
        "OPENROUTER_API_KEY",
        "TRIMATRIX_LLM_MODELS",
        "TRIMATRIX_DEBOUNCE_SECONDS",
        "TRIMATRIX_DATA_DIR",
        "TRIMATRIX_STATE_DB_PATH",
        "TRIMATRIX_SHARE_LINK_PATH",
        "TRIMATRIX_LLM_CONNECT_TIMEOUT_SECONDS",
        "TRIMATRIX_LLM_READ_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    s = Settings.from_env()
    assert s.openrouter_api_key is None
    assert s.debounce_seconds == 1.5
    assert s.llm_models
    assert s.state_db_path == Path(".local/trimatrix") / "trimatrix.sqlite3"


def test_env_overrides(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("OPENROUTER_API_KEY", "sk-fallback")
    clean_env.setenv("TRIMATRIX_LLM_MODELS", "a/b, c/d")
    clean_env.setenv("TRIMATRIX_DEBOUNCE_SECONDS", "-3")
    clean_env.setenv("TRIMATRIX_DATA_DIR", str(tmp_path))
    clean_env.setenv("TRIMATRIX_LLM_CONNECT_TIMEOUT_SECONDS", "10")
    clean_env.setenv("TRIMATRIX_LLM_READ_TIMEOUT_SECONDS", "oops")

    s = Settings.from_env()
    assert s.openrouter_api_key == "sk-fallback"
    assert s.llm_models == ["a/b", "c/d"]
    assert s.debounce_seconds == 0.0
    assert s.share_link_path == tmp_path / "share_link.txt"
    # read timeout falls back to its default and never undercuts connect
    assert s.llm_read_timeout == 60.0
    assert s.llm_connect_timeout == 10.0


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_hides_pipeline_chatter() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("trimatrix.core.session", logging.INFO))
    assert not f.filter(_record("trimatrix.pipeline.batch_queue", logging.INFO))
    assert f.filter(_record("trimatrix.pipeline.gateway", logging.WARNING))
    assert not f.filter(_record("httpx", logging.WARNING))
    assert f.filter(_record("httpx", logging.ERROR))
    assert not f.filter(_record("py.warnings", logging.WARNING))


def test_setup_logging_writes_full_log_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.CRITICAL)
        logging.getLogger("trimatrix.pipeline.batch_queue").debug("queue detail")
        for h in root.handlers:
            h.flush()
        assert log_file == tmp_path / "logs" / LOG_FILE_NAME
        assert "queue detail" in log_file.read_text("utf-8")
        assert logging.getLogger("openai").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
