"""Counter administration entry point.

Inspects or changes an owner's sequence counters outside the API. A reset
makes the counter issue identifiers that already exist again; only use it
on owners without products of that kind.

Usage:
    python -m admin.counter_admin current <owner_id> product
    python -m admin.counter_admin next <owner_id> batch
    python -m admin.counter_admin reset <owner_id> product --yes
"""

import argparse
import asyncio

from shared.clients.db.DBClientManager import DBClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.counter import CounterKind
from shared.services.CounterService import CounterService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect or change per-owner sequence counters.")
    parser.add_argument("action", choices=["current", "next", "reset"])
    parser.add_argument("owner_id", help="Owner whose counter to use")
    parser.add_argument("kind", choices=[kind.value for kind in CounterKind])
    parser.add_argument("--yes", action="store_true", help="Confirm a reset")
    return parser


async def run(counter_service: CounterService, action: str, owner_id: str, kind: CounterKind) -> int:
    """Execute one counter action and return the counter value afterwards."""
    if action == "next":
        return await counter_service.next_value(owner_id, kind)
    if action == "reset":
        await counter_service.reset(owner_id, kind)
    return await counter_service.current_value(owner_id, kind)


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    if args.action == "reset" and not args.yes:
        logger.error("Refusing to reset the %s counter of %s without --yes.", args.kind, args.owner_id)
        return 2

    db_client = DBClientManager(helper_config=config).get_client()
    try:
        await db_client.boot()
        if not await db_client.do_healthcheck():
            logger.error("Database %r is not reachable. Aborting.", db_client.get_database_name())
            return 1
        counter_service = CounterService(helper_config=config, db_client=db_client)
        value = await run(counter_service, args.action, args.owner_id, CounterKind(args.kind))
    finally:
        await db_client.close()

    logger.info("%s counter of %s: %d", args.kind, args.owner_id, value, color="cyan")
    print(value)
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
