import os
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional

from filelock import FileLock, Timeout

from storefront.config import settings
from storefront.services.errors import CheckoutBusy
from storefront.utils.logging import get_logger

log = get_logger(__name__)


def locks_dir() -> str:
    path = settings.LOCKS_DIR or os.path.join(tempfile.gettempdir(), "storefront_locks")
    os.makedirs(path, exist_ok=True)
    return path


@contextmanager
def user_lock(user_id: int, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Serialize cart mutations and finalization for one user.

    A file lock rather than a threading.Lock so several worker processes
    sharing the database also queue behind each other.
    """
    timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    lock = FileLock(os.path.join(locks_dir(), f"user_{user_id}.lock"))
    try:
        lock.acquire(timeout=timeout)
    except Timeout:
        log.warning("checkout lock busy for user=%s after %.1fs", user_id, timeout)
        raise CheckoutBusy(user_id=user_id)
    try:
        yield
    finally:
        lock.release()
