from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)

DEFAULT_UNDO_SECONDS = 5.0


class UndoDelete:
    """Single-slot holder for a delete that has not been sent yet.

    ``start`` parks a removed link and schedules ``on_commit`` after
    ``delay`` seconds. ``undo`` before then hands the link to ``on_restore``
    and cancels the job, so no request is ever made. Only one delete is
    pending at a time: starting another commits the parked one immediately.
    """

    def __init__(
        self,
        scheduler,
        on_commit: Callable[[dict], None],
        on_restore: Callable[[dict], None],
        delay: float = DEFAULT_UNDO_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._on_commit = on_commit
        self._on_restore = on_restore
        self._delay = delay
        self._lock = threading.Lock()
        self._pending: dict | None = None
        self._job_id = f"linksaver-undo-{uuid.uuid4().hex}"

    @property
    def pending(self) -> dict | None:
        with self._lock:
            return dict(self._pending) if self._pending else None

    @property
    def pending_id(self) -> str | None:
        with self._lock:
            return self._pending["id"] if self._pending else None

    def start(self, link: dict) -> dict | None:
        """Park ``link``; returns the previously pending link, already committed."""
        with self._lock:
            superseded = self._pending
            if superseded:
                self._cancel_job()
            self._pending = link
            self._scheduler.add_job(
                self._fire,
                "date",
                run_date=datetime.now(timezone.utc) + timedelta(seconds=self._delay),
                args=[link["id"]],
                id=self._job_id,
                replace_existing=True,
            )
        if superseded:
            logger.debug("Undo slot superseded, committing %s", superseded["id"])
            self._on_commit(superseded)
        return superseded

    def undo(self) -> dict | None:
        with self._lock:
            link = self._pending
            if link is None:
                return None
            self._pending = None
            self._cancel_job()
        self._on_restore(link)
        return link

    def flush(self) -> dict | None:
        with self._lock:
            link = self._pending
            if link is None:
                return None
            self._pending = None
            self._cancel_job()
        self._on_commit(link)
        return link

    def _fire(self, link_id: str) -> None:
        with self._lock:
            if self._pending is None or self._pending["id"] != link_id:
                return
            link = self._pending
            self._pending = None
        self._on_commit(link)

    def _cancel_job(self) -> None:
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            pass
