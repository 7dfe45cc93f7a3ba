"""
Unit tests for the lookups shared by the group-scoped services.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from crowdlink.errors import AppError, ErrorCode
from crowdlink.services import common


def test_as_utc_treats_naive_datetimes_as_utc():
    naive = datetime(2026, 5, 1, 12, 0)
    aware = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    assert common.as_utc(naive) == aware
    assert common.as_utc(aware) is aware
    assert common.as_utc(None) is None


def test_isoformat_keeps_offset():
    plus_two = timezone(timedelta(hours=2))

    assert common.isoformat(datetime(2026, 5, 1, 12, 0)) == "2026-05-01T12:00:00+00:00"
    assert common.isoformat(datetime(2026, 5, 1, 12, 0, tzinfo=plus_two)) == "2026-05-01T12:00:00+02:00"
    assert common.isoformat(None) is None


def test_get_group_or_404_returns_group():
    session = MagicMock()
    group = SimpleNamespace(id="g1")
    session.get.return_value = group

    assert common.get_group_or_404("g1", session) is group


def test_get_group_or_404_raises_for_missing_group():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        common.get_group_or_404("gone", session)

    assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
    assert exc_info.value.http_status == 404


@patch("crowdlink.services.common.get_membership", return_value=None)
def test_require_member_rejects_outsiders(mock_get_membership):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        common.require_member("g1", "u9", session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert exc_info.value.http_status == 403
    mock_get_membership.assert_called_once_with("g1", "u9", session)


@patch("crowdlink.services.common.get_membership")
def test_require_member_accepts_members(mock_get_membership):
    mock_get_membership.return_value = SimpleNamespace(group_id="g1", user_id="u1")

    common.require_member("g1", "u1", MagicMock())
    assert common.is_member("g1", "u1", MagicMock()) is True
