"""Mirror confirmed SimplyBook bookings into the SchoolBookings table.

Usage:
    python -m minimusiker.scripts.sync_bookings --from 2026-01-01 --to 2026-12-31
    python -m minimusiker.scripts.sync_bookings --dry-run
"""
import argparse
import asyncio

from loguru import logger

from minimusiker.clients.airtable import AirtableClient
from minimusiker.clients.mailer import ResendMailer
from minimusiker.clients.simplybook import SimplyBookClient
from minimusiker.clients.storage import R2Storage
from minimusiker.core.logger import setup_logging
from minimusiker.services.bookings import BookingService, SyncResult
from minimusiker.services.events import EventService
from minimusiker.services.notifications import NotificationService
from minimusiker.services.repository import Repository
from minimusiker.services.tasks import TaskService
from minimusiker.services.teacher import TeacherService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync SimplyBook bookings to Airtable")
    parser.add_argument("--from", dest="date_from", default=None, help="YYYY-MM-DD")
    parser.add_argument("--to", dest="date_to", default=None, help="YYYY-MM-DD")
    parser.add_argument("--dry-run", action="store_true")
    return parser


async def run(date_from=None, date_to=None, dry_run: bool = False) -> SyncResult:
    airtable = AirtableClient()
    simplybook = SimplyBookClient()
    mailer = ResendMailer()
    try:
        repo = Repository(airtable)
        events = EventService(repo)
        teachers = TeacherService(repo, events, NotificationService(mailer))
        tasks = TaskService(repo, R2Storage())
        service = BookingService(repo, simplybook, events, teachers, tasks)
        return await service.sync_bookings(date_from, date_to, dry_run=dry_run)
    finally:
        await airtable.close()
        await simplybook.close()
        await mailer.close()


async def main():
    args = build_parser().parse_args()
    setup_logging()
    logger.info(
        f"Starting booking sync (from={args.date_from or '-'}, to={args.date_to or '-'}"
        f"{', dry run' if args.dry_run else ''})"
    )
    result = await run(args.date_from, args.date_to, args.dry_run)
    if result.skipped:
        logger.warning(f"Skipped bookings: {', '.join(result.skipped)}")
    logger.success(
        f"Sync complete: {result.fetched} fetched, {result.created} created, "
        f"{result.updated} updated"
    )


if __name__ == "__main__":
    asyncio.run(main())
