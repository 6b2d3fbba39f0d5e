"""
Latest resolved element record per body.

Fetches run on worker threads; the pipeline only ever reads what has
already been resolved, so get() never blocks on the network.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from utils.bodies import Body, BODY_CONFIGS, resolve_body
from utils.config import PipelineConfig
from utils.tle import ElementRecord, fallback_record, load_tle_file
from .celestrak import CelestrakClient

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore:
    """Thread-safe store of the freshest known record per body."""

    def __init__(self, client: Optional[CelestrakClient] = None,
                 config: Optional[PipelineConfig] = None,
                 max_workers: int = 2,
                 now: Callable[[], datetime] = _utc_now):
        """
        Args:
            client: Record fetcher (default: CelestrakClient from config)
            config: Pipeline config (fetch URL, timeout, max record age)
            max_workers: Fetch thread pool size
            now: Source of the current UTC time (injectable for tests)
        """
        self.config = config or PipelineConfig()
        self.client = client or CelestrakClient(self.config.celestrak_url, self.config.fetch_timeout)
        self._now = now

        self._lock = threading.Lock()
        self._records: Dict[Body, ElementRecord] = {}
        self._pending: Dict[Body, Future] = {}
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='record-fetch')

    def get(self, body: Union[Body, str]) -> Optional[ElementRecord]:
        """
        Latest record for a body, or its fallback record if none was resolved.
        """
        body = resolve_body(body)
        with self._lock:
            record = self._records.get(body)
        return record if record is not None else fallback_record(body)

    def update(self, body: Union[Body, str], record: ElementRecord) -> bool:
        """
        Install a record unless the stored one has a later epoch.

        Returns:
            True if the record was stored
        """
        body = resolve_body(body)
        with self._lock:
            current = self._records.get(body)
            if current is not None and current.epoch > record.epoch:
                logger.debug(f"Ignoring older record for {body.value} "
                             f"({record.epoch.isoformat()} < {current.epoch.isoformat()})")
                return False
            self._records[body] = record

        logger.debug(f"Record for {body.value} updated (epoch {record.epoch.isoformat()}, source {record.source})")
        return True

    def needs_refresh(self, body: Union[Body, str]) -> bool:
        """
        True if the body can be fetched and has no resolved record younger
        than record_max_age_hours.
        """
        body = resolve_body(body)
        if BODY_CONFIGS[body].norad_id is None:
            return False

        with self._lock:
            record = self._records.get(body)
            pending = self._pending.get(body)

        if pending is not None and not pending.done():
            return False
        if record is None:
            return True
        return record.age(self._now()) > timedelta(hours=self.config.record_max_age_hours)

    def refresh_async(self, body: Union[Body, str]) -> Future:
        """
        Start a background fetch for a body.

        A fetch already in flight for the body is returned instead of
        starting another. Cancelling the future, or a failed fetch, leaves
        the stored record untouched.

        Returns:
            Future resolving to the fetched record (or None)
        """
        body = resolve_body(body)
        with self._lock:
            pending = self._pending.get(body)
            if pending is not None and not pending.done():
                return pending

            future = self._executor.submit(self._fetch, body)
            self._pending[body] = future

        future.add_done_callback(lambda f: self._on_fetched(body, f))
        return future

    def _fetch(self, body: Body) -> Optional[ElementRecord]:
        return self.client.fetch_record(body)

    def _on_fetched(self, body: Body, future: Future):
        with self._lock:
            if self._pending.get(body) is future:
                del self._pending[body]

        if future.cancelled():
            logger.debug(f"Fetch for {body.value} cancelled")
            return

        error = future.exception()
        if error is not None:
            logger.error(f"Fetch for {body.value} failed: {error}")
            return

        record = future.result()
        if record is not None:
            self.update(body, record)

    def refresh_stale(self, bodies: Optional[List[Body]] = None) -> Dict[Body, Future]:
        """Start fetches for every body that needs one."""
        bodies = bodies if bodies is not None else list(BODY_CONFIGS)
        return {body: self.refresh_async(body) for body in bodies if self.needs_refresh(body)}

    def load_file(self, path: Union[str, Path]) -> int:
        """
        Seed the store from a TLE file.

        Records whose catalog number matches a known body are stored; the
        rest are ignored.

        Returns:
            Number of records stored
        """
        stored = 0
        for record in load_tle_file(path):
            try:
                body = resolve_body(record.body_id)
            except KeyError:
                logger.debug(f"Skipping record for unknown catalog {record.body_id}")
                continue
            if self.update(body, record):
                stored += 1

        logger.info(f"Loaded {stored} records from {path}")
        return stored

    def shutdown(self, wait: bool = False):
        """Stop the fetch pool, cancelling fetches that have not started."""
        self._executor.shutdown(wait=wait, cancel_futures=True)
