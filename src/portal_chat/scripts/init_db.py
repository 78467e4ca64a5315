"""One-time script: create all tables on the configured database."""
from __future__ import annotations

import asyncio
import logging

from portal_chat.infrastructure.db import models  # noqa: F401  (registers tables)
from portal_chat.infrastructure.db.base import Base
from portal_chat.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_tables())


if __name__ == "__main__":
    main()
