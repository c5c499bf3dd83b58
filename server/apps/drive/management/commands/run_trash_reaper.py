"""Django management command to run the trash reaper loop."""

import logging
import signal
from datetime import timedelta
from typing import Any, final

from typing_extensions import override

from django.core.management.base import BaseCommand

from server.apps.drive.logic.reaper import TrashReaper

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Purge expired trash on a fixed interval until interrupted."""

    help = 'Run the background trash reaper'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--interval-hours',
            type=float,
            default=None,
            help='Hours between sweeps (default: from settings)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the command.

        Args:
            args: Positional arguments.
            options: Keyword arguments from command line.
        """
        interval = None
        if options['interval_hours'] is not None:
            interval = timedelta(hours=options['interval_hours'])

        reaper = TrashReaper(interval=interval)

        def _on_sigterm(signum: int, frame: object) -> None:  # noqa: WPS430
            logger.info('Received signal %d, stopping trash reaper', signum)
            reaper.request_stop()

        previous_handler = signal.signal(signal.SIGTERM, _on_sigterm)

        self.stdout.write(
            self.style.SUCCESS(
                f'Starting trash reaper (every {reaper.interval})',
            ),
        )

        try:
            reaper.run_forever()
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('\nShutting down...'))
        finally:
            reaper.stop()
            signal.signal(signal.SIGTERM, previous_handler)
            self.stdout.write(self.style.SUCCESS('Trash reaper stopped'))
