from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from .connection import execute_query

_logger = logging.getLogger(__name__)


async def get_automod_settings(guild_id: int) -> Optional[dict[str, Any]]:
    row, _ = await execute_query(
        "SELECT settings_json FROM automod_settings WHERE guild_id = %s",
        (guild_id,),
        fetch_one=True,
    )
    if not row or row[0] is None:
        return None
    raw = row[0]
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError:
        _logger.warning("Stored automod settings for guild %s are not valid JSON", guild_id)
        return None
    return data if isinstance(data, dict) else None


async def save_automod_settings(guild_id: int, data: Mapping[str, Any]) -> None:
    await execute_query(
        """
        INSERT INTO automod_settings (guild_id, settings_json)
        VALUES (%s, %s)
        ON DUPLICATE KEY UPDATE settings_json = VALUES(settings_json)
        """,
        (guild_id, json.dumps(dict(data))),
    )


class MySQLConfigStore:
    """Tenant config store backed by the ``automod_settings`` table."""

    async def load(self, tenant_id: str) -> Optional[Mapping[str, Any]]:
        return await get_automod_settings(int(tenant_id))

    async def save(self, tenant_id: str, data: Mapping[str, Any]) -> None:
        await save_automod_settings(int(tenant_id), data)
