from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from storefront.utils.logging import get_logger

log = get_logger(__name__)


@contextmanager
def transaction(session: Session, label: str = "tx") -> Iterator[Session]:
    """
    Unit of work over an existing Session: commit when the block finishes,
    roll back (and re-raise) on any exception.

    Usage:
        with transaction(db, "cart.add"):
            ... DB work ...
    """
    try:
        yield session
        session.commit()
    except Exception:
        log.debug("%s rolled back", label)
        session.rollback()
        raise
