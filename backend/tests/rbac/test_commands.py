"""
Tests for the seed_permissions management command.
"""

from io import StringIO

import pytest
from django.core.management import call_command

from apps.rbac.constants import PERMISSIONS
from apps.rbac.models import Permission


@pytest.mark.django_db
class TestSeedPermissionsCommand:
    def test_first_run_creates(self) -> None:
        out = StringIO()

        call_command("seed_permissions", stdout=out)

        assert Permission.objects.count() == len(PERMISSIONS)
        assert f"Seeded permissions: {len(PERMISSIONS)} created, 0 updated" in out.getvalue()

    def test_second_run_updates(self) -> None:
        call_command("seed_permissions", stdout=StringIO())
        out = StringIO()

        call_command("seed_permissions", stdout=out)

        assert Permission.objects.count() == len(PERMISSIONS)
        assert f"0 created, {len(PERMISSIONS)} updated" in out.getvalue()
