# app/core/unit_of_work.py
"""
Transaction boundary for multi-step writes (checkout, payment settlement).

    with UnitOfWork(session, lock_key=user_id):
        ... reads, stock decrements, inserts, cart clear ...

  - commits once on clean exit
  - rolls back on any exception (nothing partial is ever committed)
  - SQLAlchemy errors are re-raised as TransientStorageFailure (retryable)
  - holds a per-key lock for the whole block, so two requests for the
    same user (e.g. webhook + verify-session) run one after the other
    inside this process
"""
import logging
import threading
import weakref
from typing import Hashable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.errors import TransientStorageFailure

logger = logging.getLogger(__name__)


class KeyedLocks:
    """
    Registry of re-entrant locks, one per key.

    Entries are weak: a key's lock is dropped once no unit of work holds
    a reference to it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def get(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def __len__(self) -> int:
        return len(self._locks)


user_locks = KeyedLocks()


class UnitOfWork:
    def __init__(
        self,
        session: Session,
        lock_key: Hashable | None = None,
        locks: KeyedLocks = user_locks,
    ):
        self.session = session
        self.lock_key = lock_key
        self._lock = locks.get(lock_key) if lock_key is not None else None

    def __enter__(self) -> "UnitOfWork":
        if self._lock is not None:
            self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is None:
                self._commit()
            else:
                self.session.rollback()
                if isinstance(exc, SQLAlchemyError):
                    logger.error(f"Unit of work rolled back on storage error: {exc}")
                    raise TransientStorageFailure() from exc
        finally:
            if self._lock is not None:
                self._lock.release()
        return False

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(f"Commit failed, unit of work rolled back: {exc}")
            raise TransientStorageFailure() from exc
