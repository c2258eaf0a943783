import importlib
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings
from storefront.utils.logging import get_logger

log = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # sync handlers run in a threadpool; concurrent writers wait on the file lock
    connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# every module that declares tables; imported before create_all so metadata is complete
MODEL_MODULES = [
    "storefront.models.category",
    "storefront.models.user",
    "storefront.models.session",
    "storefront.models.product",
    "storefront.models.cart_item",
    "storefront.models.payment_intent",
    "storefront.models.order",
    "storefront.models.idempotency",
    "storefront.models.wishlist_item",
    "storefront.models.review",
]


def init_db(reset: bool = False):
    """
    Initialize DB schema.

    Drops every table first when ``reset`` is true or the RESET_DB env var is
    set to 1/true/yes. Otherwise existing tables are left in place.
    """
    env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    if reset or env_reset:
        log.info("Resetting database schema")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.debug("Tables ready: %s", sorted(Base.metadata.tables.keys()))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
