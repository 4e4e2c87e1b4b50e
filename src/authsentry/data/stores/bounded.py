"""Time-bounded store access.

Wraps a store so every call runs on a shared thread pool and waits at
most `timeout` seconds. A timeout or any store exception surfaces as
StoreUnavailable, which callers may retry. Scoring never continues with
a guessed baseline.
"""

import atexit
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Any, Callable, List, Optional, TypeVar

from authsentry.common.constants import StoreConstants
from authsentry.common.exceptions import StoreUnavailable
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.stores.base import EventHistoryStore, EventQuery, FingerprintStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Module-level shared executor for store reads
_shared_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_store_executor(max_workers: int = StoreConstants.EXECUTOR_MAX_WORKERS) -> ThreadPoolExecutor:
    """Get or create the shared store executor.

    Reuses a module-level executor to avoid thread creation per request.
    """
    global _shared_executor

    with _executor_lock:
        if _shared_executor is None:
            _shared_executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="StoreWorker"
            )
            atexit.register(shutdown_store_executor)
            logger.info(f"Created shared store executor with {max_workers} workers")

    return _shared_executor


def shutdown_store_executor() -> None:
    """Shutdown the shared executor. Safe to call more than once."""
    global _shared_executor

    with _executor_lock:
        executor, _shared_executor = _shared_executor, None

    if executor is not None:
        executor.shutdown(wait=True, cancel_futures=True)
        logger.info("Shared store executor shutdown complete")


def call_with_timeout(
    store_name: str,
    fn: Callable[..., T],
    *args: Any,
    timeout: float,
    executor: Optional[ThreadPoolExecutor] = None,
) -> T:
    """Run one store call on the executor and wait up to `timeout` seconds.

    Raises:
        StoreUnavailable: On timeout or if the store call raised
    """
    executor = executor or get_store_executor()
    future = executor.submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        logger.error(f"{store_name} read timed out after {timeout}s")
        raise StoreUnavailable(
            f"{store_name} read timed out after {timeout}s",
            store_name=store_name,
            details={"timeout_seconds": timeout},
        ) from e
    except StoreUnavailable:
        raise
    except Exception as e:
        logger.error(f"{store_name} read failed: {type(e).__name__}: {e}")
        raise StoreUnavailable(
            f"{store_name} read failed: {e}",
            store_name=store_name,
            details={"error_type": type(e).__name__},
        ) from e


class BoundedEventStore(EventHistoryStore):
    """Event store proxy whose calls are bounded by a timeout."""

    store_name = "event_store"

    def __init__(
        self,
        store: EventHistoryStore,
        timeout: float = StoreConstants.DEFAULT_TIMEOUT_SECONDS,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.store = store
        self.timeout = timeout
        self._executor = executor

    def record(self, event: LoginEvent) -> str:
        return call_with_timeout(
            self.store_name, self.store.record, event,
            timeout=self.timeout, executor=self._executor,
        )

    def query(self, query: EventQuery) -> List[LoginEvent]:
        return call_with_timeout(
            self.store_name, self.store.query, query,
            timeout=self.timeout, executor=self._executor,
        )

    def prune(self, before: datetime) -> int:
        return call_with_timeout(
            self.store_name, self.store.prune, before,
            timeout=self.timeout, executor=self._executor,
        )


class BoundedFingerprintStore(FingerprintStore):
    """Fingerprint store proxy whose calls are bounded by a timeout."""

    store_name = "fingerprint_store"

    def __init__(
        self,
        store: FingerprintStore,
        timeout: float = StoreConstants.DEFAULT_TIMEOUT_SECONDS,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.store = store
        self.timeout = timeout
        self._executor = executor

    def record(self, fingerprint: DeviceFingerprint) -> str:
        # Duplicate hashes are a caller error, not an outage
        return self.store.record(fingerprint)

    def query(self, user_id: str, start: datetime, end: datetime) -> List[DeviceFingerprint]:
        return call_with_timeout(
            self.store_name, self.store.query, user_id, start, end,
            timeout=self.timeout, executor=self._executor,
        )

    def prune(self, before: datetime) -> int:
        return call_with_timeout(
            self.store_name, self.store.prune, before,
            timeout=self.timeout, executor=self._executor,
        )
