from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.jobstores.base import JobLookupError

DEFAULT_DEBOUNCE_SECONDS = 0.3


class DebouncedSearch:
    """Holds raw search input and commits it after a quiet period.

    ``raw`` changes on every keystroke; ``query`` only changes once no input
    has arrived for ``delay`` seconds, and only then is ``on_commit`` called.
    """

    def __init__(
        self,
        scheduler,
        on_commit: Callable[[str], None],
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._on_commit = on_commit
        self._delay = delay
        self._lock = threading.Lock()
        self._job_id = f"linksaver-search-{uuid.uuid4().hex}"
        self.raw = ""
        self.query = ""

    def set_input(self, text: str) -> None:
        with self._lock:
            self.raw = text
            self._scheduler.add_job(
                self._commit,
                "date",
                run_date=datetime.now(timezone.utc) + timedelta(seconds=self._delay),
                id=self._job_id,
                replace_existing=True,
            )

    def flush(self) -> None:
        self.cancel()
        self._commit()

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            pass

    def _commit(self) -> None:
        with self._lock:
            if self.raw == self.query:
                return
            self.query = self.raw
            query = self.query
        self._on_commit(query)
