"""Management command to clean up old items from trash."""

from typing import Any, final

from typing_extensions import override

from django.core.management.base import BaseCommand

from server.apps.drive.logic.reaper import TrashReaper


@final
class Command(BaseCommand):
    """Run a single sweep purging items past the trash retention window."""

    help = 'Clean up old items from trash'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=None,
            help='Max trash entries to process (default: from settings)',
        )
        parser.add_argument(
            '--retention-days',
            type=int,
            default=None,
            help='Override the retention window (default: from settings)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        reaper = TrashReaper(
            retention_days=options['retention_days'],
            batch_size=options['batch_size'],
        )

        self.stdout.write(
            f'Looking for items deleted before {reaper.cutoff()} '
            f'(older than {reaper.retention_days} days)',
        )

        if options['dry_run']:
            expired = reaper.find_expired()
            for item in expired:
                self.stdout.write(
                    f'Would delete: {item.name} '
                    f'(user: {item.owner.username}, '
                    f'deleted: {item.deleted_at})',
                )
            self.stdout.write(
                self.style.SUCCESS(
                    f'Would purge {len(expired)} items from trash',
                ),
            )
            return

        result = reaper.run_once()
        self.stdout.write(
            self.style.SUCCESS(
                f'Purged {result.purged} items from trash, '
                f'{result.failed} failed, {result.skipped} skipped '
                f'({result.released_bytes} bytes released)',
            ),
        )
