import sys
from pathlib import Path

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from modules.core import config as runtime_config
from modules.core.config import EngineConfig, load_engine_config, load_runtime_config

_ENGINE_VARS = (
    "AUTOMOD_HISTORY_SIZE",
    "AUTOMOD_HISTORY_MAX_AGE_SECONDS",
    "AUTOMOD_VIOLATION_MAX_AGE_SECONDS",
    "AUTOMOD_SWEEP_INTERVAL_SECONDS",
    "AUTOMOD_ACTION_TIMEOUT_SECONDS",
    "AUTOMOD_AUDIT_TIMEOUT_SECONDS",
    "AUTOMOD_CONFIG_TIMEOUT_SECONDS",
    "AUTOMOD_AUDIT_CONTENT_LIMIT",
    "AUTOMOD_SHUTDOWN_DRAIN_SECONDS",
)


def _clear_env(monkeypatch):
    for name in _ENGINE_VARS:
        monkeypatch.delenv(name, raising=False)


def test_engine_config_defaults(monkeypatch):
    _clear_env(monkeypatch)
    assert load_engine_config() == EngineConfig()


def test_engine_config_reads_environment(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("AUTOMOD_HISTORY_SIZE", "25")
    monkeypatch.setenv("AUTOMOD_ACTION_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("AUTOMOD_SWEEP_INTERVAL_SECONDS", "600")

    config = load_engine_config()

    assert config.history_size == 25
    assert config.action_timeout_seconds == 2.5
    assert config.sweep_interval_seconds == 600


def test_engine_config_invalid_and_low_values(monkeypatch, caplog):
    _clear_env(monkeypatch)
    monkeypatch.setenv("AUTOMOD_HISTORY_SIZE", "lots")
    monkeypatch.setenv("AUTOMOD_SWEEP_INTERVAL_SECONDS", "1")

    with caplog.at_level("WARNING", logger=runtime_config.__name__):
        config = load_engine_config()

    assert config.history_size == EngineConfig().history_size
    assert config.sweep_interval_seconds == 10
    assert any("AUTOMOD_HISTORY_SIZE" in record.getMessage() for record in caplog.records)


def test_runtime_config_reads_token_and_level(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setattr(runtime_config, "load_dotenv", lambda: None)
    monkeypatch.setenv("DISCORD_TOKEN", "abc")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_COG_LOADS", "yes")

    config = load_runtime_config()

    assert config.token == "abc"
    assert config.log_level == "DEBUG"
    assert config.log_cog_loads is True
    assert config.engine == EngineConfig()
