"""In-process keyed locks serializing work on a single transaction or product.

Every writer of ``Transaction.status`` and ``Product.stock`` goes through one
of these guards, so a read-check-write under the guard behaves like a
conditional update. The locks are per process: a multi-instance deployment
needs a database row lock or a distributed lock keyed the same way.
"""

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager


class KeyedLocks:
    """Reentrant locks created on demand per key and dropped when unused."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, int] = {}

    def _checkout(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._holders[key] = self._holders.get(key, 0) + 1
            return lock

    def _release(self, key: str) -> None:
        with self._registry_lock:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._release(key)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


_transaction_locks = KeyedLocks()
_product_locks = KeyedLocks()
_customer_locks = KeyedLocks()


def transaction_guard(transaction_id) -> AbstractContextManager[None]:
    """Serialize status transitions and effects for one transaction."""
    return _transaction_locks.hold(str(transaction_id))


def product_guard(product_id) -> AbstractContextManager[None]:
    """Serialize stock adjustments for one product."""
    return _product_locks.hold(str(product_id))


def customer_guard(email: str) -> AbstractContextManager[None]:
    """Serialize customer creation for one email address."""
    return _customer_locks.hold(email)
