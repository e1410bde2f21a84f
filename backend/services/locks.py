from contextlib import contextmanager
from datetime import date
from threading import Lock

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from backend.core.errors import InternalError
from backend.models.booking_lock import BookingLock


class KeyedLock:
    """Process-local exclusive locks, one per key, dropped when unused."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[object, list] = {}

    @contextmanager
    def hold(self, key, timeout: float):
        with self._guard:
            entry = self._locks.setdefault(key, [Lock(), 0])
            entry[1] += 1

        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise InternalError(
                    'Timed out waiting for another booking on this date; please retry.',
                    retryable=True,
                )
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


booking_locks = KeyedLock()


def lock_doctor_day(db: Session, doctor_id: str, lock_date: date) -> None:
    """Take the row lock for (doctor_id, lock_date) inside the current transaction."""
    dialect_name = db.get_bind().dialect.name
    values = {'doctor_id': doctor_id, 'lock_date': lock_date}

    if dialect_name == 'postgresql':
        db.execute(postgresql.insert(BookingLock).values(**values).on_conflict_do_nothing())
    elif dialect_name == 'sqlite':
        db.execute(sqlite.insert(BookingLock).values(**values).on_conflict_do_nothing())
    elif db.get(BookingLock, (doctor_id, lock_date)) is None:
        db.add(BookingLock(**values))
        db.flush()

    db.query(BookingLock).filter(
        BookingLock.doctor_id == doctor_id,
        BookingLock.lock_date == lock_date,
    ).with_for_update().one()
