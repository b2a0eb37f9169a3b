"""
Command line access to the stored session and caches.

Usage:
    python -m treblesurf validate
    python -m treblesurf logout
    python -m treblesurf cache-stats
"""
import argparse
import asyncio
import logging
import sys

from treblesurf.core.config import get_settings
from treblesurf.dependencies import AppDependencies

logger = logging.getLogger(__name__)


async def _validate(deps: AppDependencies) -> int:
    result = await deps.session.restore_session()
    if result.ok:
        user = result.user
        print(f"Signed in as {user.email if user else 'unknown user'}")
        return 0
    if result.error is None:
        print("Not signed in")
    else:
        print(result.error.user_message)
        logger.info("validate_failed error=%s", result.error.message)
    return 1


async def _logout(deps: AppDependencies) -> int:
    await deps.session.logout()
    print("Signed out")
    return 0


def _cache_stats(deps: AppDependencies) -> int:
    print(deps.image_cache.export_info())
    return 0


async def run(command: str) -> int:
    deps = AppDependencies.build(get_settings())
    try:
        if command == "validate":
            return await _validate(deps)
        if command == "logout":
            return await _logout(deps)
        return _cache_stats(deps)
    finally:
        await deps.aclose()


def main() -> None:
    """Entry point for the ``treblesurf`` command."""
    parser = argparse.ArgumentParser(prog="treblesurf", description=__doc__.splitlines()[1])
    parser.add_argument("command", choices=["validate", "logout", "cache-stats"])
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run(args.command)))


if __name__ == "__main__":
    main()
