from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from .interfaces import ConfigStore
from .settings import (
    DEFAULT_TENANT_CONFIG,
    TenantConfig,
    config_from_mapping,
    config_to_dict,
    merge_config,
)

__all__ = ["ConfigurationResolver", "is_valid_tenant_id"]

_logger = logging.getLogger(__name__)


def is_valid_tenant_id(tenant_id: Any) -> bool:
    return isinstance(tenant_id, str) and bool(tenant_id.strip())


class ConfigurationResolver:
    """Per-tenant config cache backed by an optional :class:`ConfigStore`.

    Cached values are immutable and only ever replaced as a whole, so readers
    always observe either the old or the new config.
    """

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        *,
        timeout: float = 5.0,
        default: TenantConfig = DEFAULT_TENANT_CONFIG,
    ) -> None:
        self._store = store
        self._timeout = timeout
        self._default = default
        self._configs: dict[str, TenantConfig] = {}
        self._pending_saves: set[asyncio.Task[None]] = set()

    @property
    def default(self) -> TenantConfig:
        return self._default

    @property
    def configured_tenants(self) -> int:
        return len(self._configs)

    def get_cached(self, tenant_id: str) -> Optional[TenantConfig]:
        return self._configs.get(tenant_id)

    def invalidate(self, tenant_id: str) -> bool:
        return self._configs.pop(tenant_id, None) is not None

    def clear(self) -> None:
        self._configs.clear()

    async def resolve(self, tenant_id: Any) -> TenantConfig:
        if not is_valid_tenant_id(tenant_id):
            return self._default

        cached = self._configs.get(tenant_id)
        if cached is not None:
            return cached

        config, loaded = await self._load(tenant_id)
        if not loaded:
            # Store unreachable; retry on the next message.
            return self._configs.get(tenant_id, config)
        # A concurrent update may have landed while we were loading.
        return self._configs.setdefault(tenant_id, config)

    async def update(self, tenant_id: Any, partial: Mapping[str, Any] | None) -> TenantConfig:
        if not is_valid_tenant_id(tenant_id):
            _logger.debug("Ignoring config update for invalid tenant id %r", tenant_id)
            return self._default

        current = await self.resolve(tenant_id)
        updated = merge_config(current, partial if isinstance(partial, Mapping) else None)
        self._configs[tenant_id] = updated
        _logger.info("Updated auto moderation config for tenant %s", tenant_id)
        self._schedule_save(tenant_id, updated)
        return updated

    async def flush(self) -> None:
        """Wait for pending background saves to finish."""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)

    async def _load(self, tenant_id: str) -> tuple[TenantConfig, bool]:
        """Return the stored config and whether the store answered."""
        if self._store is None:
            return self._default, True
        try:
            raw = await asyncio.wait_for(self._store.load(tenant_id), timeout=self._timeout)
        except asyncio.TimeoutError:
            _logger.warning(
                "Timed out loading auto moderation config for tenant %s; using defaults",
                tenant_id,
            )
            return self._default, False
        except Exception:
            _logger.warning(
                "Failed to load auto moderation config for tenant %s; using defaults",
                tenant_id,
                exc_info=True,
            )
            return self._default, False
        if not raw:
            return self._default, True
        if not isinstance(raw, Mapping):
            _logger.warning("Stored config for tenant %s is not a mapping; ignoring", tenant_id)
            return self._default, True
        return config_from_mapping(raw), True

    def _schedule_save(self, tenant_id: str, config: TenantConfig) -> None:
        if self._store is None:
            return
        task = asyncio.get_running_loop().create_task(self._save(tenant_id, config))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self, tenant_id: str, config: TenantConfig) -> None:
        try:
            await asyncio.wait_for(
                self._store.save(tenant_id, config_to_dict(config)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            _logger.warning("Timed out persisting config for tenant %s", tenant_id)
        except Exception:
            _logger.warning("Failed to persist config for tenant %s", tenant_id, exc_info=True)
