from .config import EngineConfig, RuntimeConfig, load_engine_config, load_runtime_config
from .logging import configure_logging

__all__ = [
    "EngineConfig",
    "RuntimeConfig",
    "load_engine_config",
    "load_runtime_config",
    "configure_logging",
]
