import logging

from sqlalchemy.exc import SQLAlchemyError

from storefront.branding import Branding
from storefront.catalog import Inventory
from storefront.db import init_db
from storefront.reviews import ReviewBoard
from storefront.store import PersistentStore

logger = logging.getLogger(__name__)


class StorefrontState:
    """Everything the storefront reads and mutates, loaded once at startup.

    Handlers receive this object explicitly; nothing here is a module global.
    """

    def __init__(self, engine):
        try:
            init_db(engine)
        except SQLAlchemyError as e:
            # an unusable store just means an empty, non-persistent session
            logger.warning("init_db failed, continuing with empty collections: %s", e)
        self.store = PersistentStore(engine)
        self.inventory = Inventory(self.store)
        self.reviews = ReviewBoard(self.store)
        self.branding = Branding(self.store)
