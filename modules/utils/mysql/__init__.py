from .config import MYSQL_CONFIG
from .connection import (
    close_pool,
    execute_query,
    get_pool,
    init_pool,
    initialise_and_get_pool,
)
from .automod_settings import (
    MySQLConfigStore,
    get_automod_settings,
    save_automod_settings,
)

__all__ = [
    "MYSQL_CONFIG",
    "init_pool",
    "close_pool",
    "get_pool",
    "execute_query",
    "initialise_and_get_pool",
    "MySQLConfigStore",
    "get_automod_settings",
    "save_automod_settings",
]
