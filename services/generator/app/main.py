"""Run generation cycles from the command line.

    python -m services.generator.app.main            # today (and tomorrow for onthisday)
    python -m services.generator.app.main 2024-03-01 2024-03-02
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from services.generator.app.keys import InvalidGroupKey, default_keys
from services.generator.app.orchestrator import (GenerationOrchestrator,
                                                 PersistenceError)
from services.generator.app.profiles import get_profile
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import init_db

logger = setup_logging("generator", extra_loggers=("database", "shared"))


async def generate(keys: List[str], profile_name: Optional[str] = None) -> int:
    settings = get_settings()
    profile = get_profile(profile_name or settings.pipeline.profile)
    orchestrator = GenerationOrchestrator(profile, settings=settings)
    total = 0
    for key in keys or default_keys(profile.key_kind, settings.service.timezone, profile.include_tomorrow):
        result = await orchestrator.run(key)
        total += result.count
    return total


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate discovery feed groups.")
    parser.add_argument("keys", nargs="*", help="Group keys (YYYY-MM-DD, or MM-DD for onthisday)")
    parser.add_argument("--profile", help="Override FEED_PROFILE")
    args = parser.parse_args(argv)

    init_db()
    try:
        total = asyncio.run(generate(args.keys, args.profile))
    except InvalidGroupKey as e:
        parser.error(str(e))
    except PersistenceError as e:
        logger.error(f"Generation failed: {e}")
        return 1
    logger.info(f"Done: {total} item(s) persisted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
