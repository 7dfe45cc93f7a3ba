"""
services/group_watch.py — Polling subscriptions to a group's membership.

A GroupSubscription is iterable. Each iter() starts a fresh, lazy, endless
stream that yields a snapshot only when it differs from the previous one.
close() ends every stream started so far; a consumer that stops iterating
(break, generator close) ends its own stream.

A snapshot is the dict from group_service.get_group_snapshot, or None once
the group is gone.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterator

from sqlalchemy.orm import Session

from crowdlink.services import group_service

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0

_NOTHING = object()


class GroupSubscription:

    def __init__(
            self,
            fetch: Callable[[], dict | None],
            interval: float = DEFAULT_POLL_INTERVAL,
            sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch = fetch
        self._interval = interval
        self._sleep = sleep
        self._generation = 0

    def __iter__(self) -> Iterator[dict | None]:
        return self._stream(self._generation)

    def close(self) -> None:
        self._generation += 1

    def _stream(self, generation: int) -> Iterator[dict | None]:
        previous = _NOTHING
        while generation == self._generation:
            snapshot = self._fetch()
            if snapshot != previous:
                previous = snapshot
                yield snapshot
            if generation != self._generation:
                return
            self._sleep(self._interval)


def watch_group(
        group_id: str,
        session_factory: Callable[[], Session],
        interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
) -> GroupSubscription:
    """
    Subscribes to one group's membership. Each poll opens and closes its
    own session so the stream never holds a transaction open.
    """

    def fetch() -> dict | None:
        session = session_factory()
        try:
            return group_service.get_group_snapshot(group_id, session)
        finally:
            session.close()

    logger.debug("Watching group %s every %.1fs", group_id, interval)
    return GroupSubscription(fetch, interval=interval, sleep=sleep)
