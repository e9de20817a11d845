"""Management command to reconcile storage ledgers with live items."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from server.apps.vault.logic import item_store, storage_operations

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Recompute every user's used bytes from the items they own."""

    help = 'Recalculate used storage for all users (or one user)'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would change without saving',
        )
        parser.add_argument(
            '--user',
            help='Only reconcile the user with this username',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconcile command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the requested user doesn't exist.
        """
        dry_run = options['dry_run']
        users = get_user_model().objects.order_by('pk')
        if options['user']:
            users = users.filter(username=options['user'])
            if not users.exists():
                raise CommandError(f'User not found: {options["user"]}')

        checked = 0
        drifted = 0

        for user in users:
            checked += 1
            quota = storage_operations.get_or_create_quota(user)
            actual = item_store.total_size(user)
            if actual == quota.used_bytes:
                continue

            drifted += 1
            if dry_run:
                self.stdout.write(
                    f'Would fix {user.username}: '
                    f'{quota.used_bytes} -> {actual} bytes',
                )
                continue

            storage_operations.recalculate_usage(user)
            self.stdout.write(
                f'Fixed {user.username}: {quota.used_bytes} -> {actual} bytes',
            )

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Checked {checked} users, {drifted} would be fixed',
                ),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Checked {checked} users, fixed {drifted}',
                ),
            )
