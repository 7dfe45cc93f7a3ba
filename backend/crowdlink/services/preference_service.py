"""
services/preference_service.py — Per-user key/value preferences.

A plain get/set store. The group services use it to cache the last resolved
group id under LAST_GROUP_ID_KEY.

Layer rules: no Flask imports, flush only.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from crowdlink.models.user_preference import UserPreference

LAST_GROUP_ID_KEY = "last_group_id"


def _get_row(user_id: str, key: str, session: Session) -> UserPreference | None:
    return session.execute(
        select(UserPreference).where(
            UserPreference.user_id == user_id,
            UserPreference.key == key,
        )
    ).scalar_one_or_none()


def get_preferences(user_id: str, session: Session) -> dict[str, str]:
    rows = session.execute(
        select(UserPreference)
        .where(UserPreference.user_id == user_id)
        .order_by(UserPreference.key.asc())
    ).scalars().all()
    return {row.key: row.value for row in rows}


def get_preference(user_id: str, key: str, session: Session) -> str | None:
    row = _get_row(user_id, key, session)
    return row.value if row is not None else None


def set_preference(user_id: str, key: str, value: str, session: Session) -> None:
    """Upserts one preference. Writing the current value is a no-op."""
    row = _get_row(user_id, key, session)
    if row is None:
        session.add(UserPreference(user_id=user_id, key=key, value=value))
    elif row.value != value:
        row.value = value
    else:
        return
    session.flush()


def set_preferences(user_id: str, values: dict[str, str], session: Session) -> dict[str, str]:
    """Upserts several preferences and returns the full preference map."""
    for key, value in values.items():
        set_preference(user_id, key, value, session)
    return get_preferences(user_id, session)


def delete_preference(user_id: str, key: str, session: Session) -> bool:
    row = _get_row(user_id, key, session)
    if row is None:
        return False
    session.delete(row)
    session.flush()
    return True


def set_last_group_id(user_id: str, group_id: str, session: Session) -> None:
    set_preference(user_id, LAST_GROUP_ID_KEY, group_id, session)


def clear_last_group_id(user_id: str, session: Session) -> None:
    delete_preference(user_id, LAST_GROUP_ID_KEY, session)
