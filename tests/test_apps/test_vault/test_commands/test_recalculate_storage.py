"""Tests for recalculate_storage management command."""

from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from server.apps.vault.models import Item, UserQuota


def _drift(user, size_bytes, recorded_bytes):
    Item.objects.create(
        user=user,
        kind=Item.Kind.NOTE,
        title='Drifted',
        size_bytes=size_bytes,
    )
    UserQuota.objects.filter(user=user).update(used_bytes=recorded_bytes)


@pytest.mark.django_db
class TestRecalculateStorageCommand:
    """Tests for recalculate_storage management command."""

    def test_fixes_drifted_ledgers(self, user, other_user):
        """Test every drifted ledger is rebuilt from live items."""
        _drift(user, size_bytes=100, recorded_bytes=900)
        _drift(other_user, size_bytes=50, recorded_bytes=50)

        out = StringIO()
        call_command('recalculate_storage', stdout=out)

        assert UserQuota.objects.get(user=user).used_bytes == 100
        assert UserQuota.objects.get(user=other_user).used_bytes == 50
        assert 'Fixed testuser: 900 -> 100 bytes' in out.getvalue()
        assert 'Checked 2 users, fixed 1' in out.getvalue()

    def test_dry_run_changes_nothing(self, user):
        """Test dry run only reports."""
        _drift(user, size_bytes=100, recorded_bytes=0)

        out = StringIO()
        call_command('recalculate_storage', '--dry-run', stdout=out)

        assert UserQuota.objects.get(user=user).used_bytes == 0
        assert 'Would fix testuser: 0 -> 100 bytes' in out.getvalue()
        assert '1 would be fixed' in out.getvalue()

    def test_single_user(self, user, other_user):
        """Test --user limits the run to one account."""
        _drift(user, size_bytes=10, recorded_bytes=0)
        _drift(other_user, size_bytes=20, recorded_bytes=0)

        call_command('recalculate_storage', '--user', 'otheruser', stdout=StringIO())

        assert UserQuota.objects.get(user=user).used_bytes == 0
        assert UserQuota.objects.get(user=other_user).used_bytes == 20

    def test_unknown_user(self, user):
        """Test an unknown username is an error."""
        with pytest.raises(CommandError, match='User not found'):
            call_command('recalculate_storage', '--user', 'nobody')
