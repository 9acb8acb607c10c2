import logging

from storefront.catalog import to_data_uri
from storefront.models import StoreEntry
from storefront.session import AdminSession
from storefront.store import PersistentStore

logger = logging.getLogger(__name__)


class Branding:
    """Logo and review-site link, read from the store on every access.

    Changes made in admin mode show up on the next page render; there is no
    per-process snapshot to go stale.
    """

    def __init__(self, store: PersistentStore):
        self.store = store

    @property
    def logo(self) -> str:
        return self.store.get_value(StoreEntry.BRAND_LOGO) or ""

    @property
    def review_url(self) -> str:
        return self.store.get_value(StoreEntry.GOOGLE_REVIEW) or ""

    def set_logo(self, session: AdminSession, data_uri: str) -> bool:
        if not session.is_admin or not data_uri:
            return False
        if not self.store.set_value(StoreEntry.BRAND_LOGO, data_uri):
            return False
        logger.info("brand logo replaced")
        return True

    async def upload_logo(self, session: AdminSession, upload) -> bool:
        if not session.is_admin:
            return False
        data = await upload.read()
        if not data:
            return False
        return self.set_logo(session, to_data_uri(data, getattr(upload, "content_type", None)))

    def clear_logo(self, session: AdminSession) -> bool:
        if not session.is_admin:
            return False
        if not self.store.remove_value(StoreEntry.BRAND_LOGO):
            return False
        logger.info("brand logo removed")
        return True

    def set_review_url(self, session: AdminSession, url: str | None) -> bool:
        if not session.is_admin:
            return False
        url = (url or "").strip()
        if not url:
            return self.store.remove_value(StoreEntry.GOOGLE_REVIEW)
        return self.store.set_value(StoreEntry.GOOGLE_REVIEW, url)
