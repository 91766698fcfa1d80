"""
tests/test_manage.py — Operator CLI
=====================================
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from synapse import manage
from synapse.services.user_service import get_admin_document


@pytest.fixture
def run(db_engine):
    """``run("grant", ...)`` → exit code, against the test database."""

    def _run(*argv: str) -> int:
        with patch.object(manage, "create_db_engine", return_value=db_engine):
            return manage.main(list(argv))

    return _run


class TestPermissions:
    def test_grant_then_revoke(self, run, store):
        from conftest import make_admin

        make_admin(store, "admin-1")
        assert run("grant", "syn-admin-rav-0001", "manage_events", "manage_queries") == 0
        assert get_admin_document(store, "admin-1").permissions == ["manage_events", "manage_queries"]

        assert run("revoke", "SYN-ADMIN-RAV-0001", "manage_events") == 0
        assert get_admin_document(store, "admin-1").permissions == ["manage_queries"]

    def test_grant_is_audited_as_the_operator(self, run, store, db_engine):
        from conftest import make_admin

        from synapse.services.audit_service import get_recent_actions

        make_admin(store, "admin-1")
        run("grant", "SYN-ADMIN-RAV-0001", "manage_sponsors")
        assert get_recent_actions(db_engine)[0]["actor_id"] == manage.OPERATOR

    def test_unknown_admin(self, run, store):
        from conftest import make_user

        make_user(store, "u1")
        assert run("grant", "SYN-ASH-0001", "manage_events") == 1
        assert run("grant", "SYN-ADMIN-NOB-0001", "manage_events") == 1

    def test_unknown_permission_is_a_usage_error(self, run):
        with pytest.raises(SystemExit):
            run("grant", "SYN-ADMIN-RAV-0001", "manage_everything")


class TestListAdmins:
    def test_prints_each_admin(self, run, store, capsys):
        from conftest import make_admin

        make_admin(store, "admin-1", ["manage_events"])
        make_admin(store, "admin-2", first_name="Meera")
        assert run("list-admins") == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0].startswith("SYN-ADMIN-MEE-0002")
        assert out[0].endswith("(none)")
        assert out[1].startswith("SYN-ADMIN-RAV-0001")
        assert out[1].endswith("manage_events")
