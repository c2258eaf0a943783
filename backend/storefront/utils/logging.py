import logging
import sys

from storefront.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def configure_logging(level: str = None) -> None:
    """
    Install a single stdout handler on the ``storefront`` logger tree.

    Safe to call more than once (uvicorn reload, tests); only the level is
    updated on later calls.
    """
    global _configured
    root = logging.getLogger("storefront")
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if _configured:
        return
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(h)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not name.startswith("storefront"):
        name = f"storefront.{name}"
    return logging.getLogger(name)
