"""Customer review board.

A review starts out pending when a visitor submits it. The admin can
publish it, take it back down, attach an owner response or delete it.
Moderation calls made outside admin mode are refused by returning False
and leave the board untouched.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from storefront.catalog import to_number, new_id
from storefront.errors import FormValidationError
from storefront.models import Review, StoreEntry
from storefront.session import AdminSession
from storefront.store import PersistentStore

logger = logging.getLogger(__name__)

DEFAULT_RATING = 5


def parse_rating(value) -> int:
    n = to_number(value)
    if n is None or not n.is_integer() or not 1 <= n <= 5:
        return DEFAULT_RATING
    return int(n)


@dataclass
class ResponseDraft:
    """Owner response being edited; nothing is saved until it is committed."""

    review_id: str
    text: str

    def edit(self, text: str) -> "ResponseDraft":
        self.text = text
        return self


class ReviewBoard:
    key = StoreEntry.REVIEWS

    def __init__(self, store: PersistentStore):
        self.store = store
        self.items: list[Review] = store.load(self.key, Review)

    def _persist(self):
        self.store.save(self.key, self.items)

    def get(self, review_id: str) -> Optional[Review]:
        return next((r for r in self.items if r.id == review_id), None)

    def published(self) -> list[Review]:
        return [r for r in self.items if r.approved]

    def pending(self) -> list[Review]:
        return [r for r in self.items if not r.approved]

    def submit(self, name: Optional[str], comment: Optional[str], rating=None) -> Review:
        name = (name or "").strip()
        comment = (comment or "").strip()
        if not name or not comment:
            raise FormValidationError("Please add your name and a short comment.")
        review = Review(
            id=new_id(r.id for r in self.items),
            name=name,
            rating=parse_rating(rating),
            comment=comment,
            created_at=datetime.now(timezone.utc),
        )
        self.items.insert(0, review)
        self._persist()
        logger.info("review %s submitted, awaiting approval", review.id)
        return review

    def _update(self, session: AdminSession, review_id: str, **changes) -> bool:
        if not session.is_admin:
            return False
        for i, r in enumerate(self.items):
            if r.id == review_id:
                self.items[i] = r.model_copy(update=changes)
                self._persist()
                return True
        return False

    def approve(self, session: AdminSession, review_id: str) -> bool:
        return self._update(session, review_id, approved=True)

    def unapprove(self, session: AdminSession, review_id: str) -> bool:
        return self._update(session, review_id, approved=False)

    def delete(self, session: AdminSession, review_id: str) -> bool:
        if not session.is_admin:
            return False
        kept = [r for r in self.items if r.id != review_id]
        if len(kept) == len(self.items):
            return False
        self.items = kept
        self._persist()
        logger.info("review %s deleted", review_id)
        return True

    def open_response(self, session: AdminSession, review_id: str) -> Optional[ResponseDraft]:
        if not session.is_admin:
            return None
        review = self.get(review_id)
        if review is None:
            return None
        return ResponseDraft(review_id=review.id, text=review.response)

    def commit_response(self, session: AdminSession, draft: ResponseDraft) -> bool:
        return self._update(session, draft.review_id, response=draft.text)
