"""Periodic purge of revoked refresh tokens past their retention window."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta

from identity_service.application.errors import StorageError
from identity_service.application.services.refresh_token_service import RefreshTokenService

SleepCallable = Callable[[float], Awaitable[None]]
logger = logging.getLogger(__name__)


class TokenReaperService:
    """Delete refresh-token rows that are both revoked and long expired."""

    def __init__(
        self,
        *,
        refresh_tokens: RefreshTokenService,
        retention: timedelta = timedelta(days=30),
        interval_seconds: float = 3600.0,
        sleep: SleepCallable = asyncio.sleep,
    ) -> None:
        self._refresh_tokens = refresh_tokens
        self._retention = retention
        self._interval_seconds = interval_seconds
        self._sleep = sleep

    async def run_once(self) -> int:
        """Purge once and return the number of deleted rows."""

        try:
            purged = await self._refresh_tokens.purge(retention=self._retention)
        except StorageError:
            logger.exception("token_reaper_purge_failed")
            return 0

        if purged:
            logger.info("token_reaper_purged count=%s", purged)
        return purged

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Purge on a fixed interval until stop_event is set."""

        while not stop_event.is_set():
            await self.run_once()
            await self._sleep(self._interval_seconds)
