from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine


def acquire_lock(conn: Connection, name: str) -> bool:
    result = conn.execute(text("select pg_try_advisory_lock(hashtext(:name))"), {"name": name})
    return bool(result.scalar())


def release_lock(conn: Connection, name: str) -> None:
    conn.execute(text("select pg_advisory_unlock(hashtext(:name))"), {"name": name})


@contextmanager
def job_lock(engine: Engine, name: str) -> Iterator[bool]:
    """Advisory lock held on a dedicated connection for the whole job.

    Yields False when another run already holds the lock. Engines other than
    PostgreSQL have no advisory locks and always yield True.
    """
    if engine.dialect.name != "postgresql":
        yield True
        return
    with engine.connect() as conn:
        locked = acquire_lock(conn, name)
        try:
            yield locked
        finally:
            if locked:
                release_lock(conn, name)
            conn.commit()
