"""token reaper entrypoint."""

from __future__ import annotations

import asyncio
import logging

from identity_service.config.settings import load_settings
from identity_service.infrastructure.container import build_identity_services
from identity_service.infrastructure.db.session import create_session_factory
from identity_service.infrastructure.logging import configure_logging

logger = logging.getLogger(__name__)


async def _run_token_reaper() -> None:
    settings = load_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        "token_reaper_starting interval_seconds=%s retention_days=%s",
        settings.token_reaper_interval_seconds,
        settings.refresh_token_retention_days,
    )

    session_factory = create_session_factory(settings.database_url)
    services = build_identity_services(settings=settings, session_factory=session_factory)
    stop_event = asyncio.Event()

    await services.token_reaper.run_until_stopped(stop_event)


def main() -> None:
    """Run the refresh-token purge loop until the process is stopped."""

    asyncio.run(_run_token_reaper())


if __name__ == "__main__":
    main()
