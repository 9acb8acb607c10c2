from sqlmodel import create_engine, SQLModel
from sqlalchemy.pool import StaticPool
from storefront.settings import settings
from storefront.models import StoreEntry


def make_engine(url: str):
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # in-memory databases live per connection; share one across threads
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, **kwargs)


engine = make_engine(settings.DATABASE_URL)


def init_db(bind=None):
    """Create the key/value table if it doesn't exist yet."""
    SQLModel.metadata.create_all(bind or engine, tables=[StoreEntry.__table__])
