from __future__ import annotations

from tradesim.utils.env import EnvSettings, get_str, get_str_chain


def test_env_defaults_when_missing(monkeypatch):
    for key in ["ENV", "TRADESIM_LOG_LEVEL", "LOG_LEVEL", "GIT_SHA", "COMMIT_SHA", "SOURCE_VERSION"]:
        monkeypatch.delenv(key, raising=False)

    env = EnvSettings()

    assert env.ENV == "local"
    assert env.LOG_LEVEL == "INFO"
    assert env.GIT_SHA == "unknown"


def test_env_chain_prefers_first_non_empty(monkeypatch):
    monkeypatch.setenv("TRADESIM_LOG_LEVEL", "  ")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("GIT_SHA", raising=False)
    monkeypatch.setenv("COMMIT_SHA", "feedbee")

    env = EnvSettings()

    assert env.LOG_LEVEL == "debug"
    assert env.GIT_SHA == "feedbee"


def test_get_str_treats_empty_as_missing(monkeypatch):
    monkeypatch.setenv("TRADESIM_EMPTY", "")
    assert get_str("TRADESIM_EMPTY", "fallback") == "fallback"
    assert get_str_chain(("TRADESIM_EMPTY", "TRADESIM_ABSENT"), "x") == "x"
