import base64
import json
import logging
import math
from datetime import datetime, timezone
from secrets import token_urlsafe
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from storefront.errors import FormValidationError
from storefront.models import FilterSet, SortKey, StoreEntry, VehicleDraft, VehicleListing
from storefront.session import AdminSession
from storefront.store import PersistentStore

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("title", "make", "model", "body", "fuel", "location")


def to_number(value) -> Optional[float]:
    """Coerce filter/form text to a number or None.

    Empty strings and text that is not a finite number mean "not given".
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def new_id(taken: Iterable[str] = ()) -> str:
    taken = set(taken)
    while True:
        candidate = token_urlsafe(12)
        if candidate not in taken:
            return candidate


# -------- derivation --------
def _matches_query(v: VehicleListing, q: str) -> bool:
    haystack = " ".join(str(getattr(v, f) or "") for f in SEARCH_FIELDS)
    return q in haystack.casefold()


_SORT_KEYS = {
    SortKey.PRICE_ASC: (lambda v: v.price, False),
    SortKey.PRICE_DESC: (lambda v: v.price, True),
    SortKey.MILEAGE_ASC: (lambda v: v.mileage, False),
    SortKey.MILEAGE_DESC: (lambda v: v.mileage, True),
    SortKey.YEAR_ASC: (lambda v: v.year, False),
    SortKey.YEAR_DESC: (lambda v: v.year, True),
    SortKey.NEWEST: (lambda v: v.created_at, True),
}


def derive(
    inventory: Iterable[VehicleListing],
    query: str = "",
    filters: Optional[FilterSet] = None,
    sort_key: SortKey | str | None = SortKey.NEWEST,
) -> list[VehicleListing]:
    """Return the display list for the given search, filters and ordering.

    Every active constraint must hold (AND). The sort is stable, so records
    that tie keep their inventory order. Nothing passed in is modified.
    """
    items = list(inventory)
    q = (query or "").strip().casefold()
    if q:
        items = [v for v in items if _matches_query(v, q)]

    if filters is not None:
        for field in FilterSet.CATEGORICAL:
            wanted = getattr(filters, field)
            if wanted:
                items = [v for v in items if getattr(v, field) == wanted]

        max_price = to_number(filters.max_price)
        if max_price is not None:
            items = [v for v in items if v.price <= max_price]
        max_mileage = to_number(filters.max_mileage)
        if max_mileage is not None:
            items = [v for v in items if v.mileage <= max_mileage]
        year_min = to_number(filters.year_min)
        if year_min is not None:
            items = [v for v in items if v.year >= year_min]
        year_max = to_number(filters.year_max)
        if year_max is not None:
            items = [v for v in items if v.year <= year_max]

    key, reverse = _SORT_KEYS[SortKey.parse(sort_key)]
    # sorted() keeps ties in input order even with reverse=True
    return sorted(items, key=key, reverse=reverse)


def filter_options(inventory: Iterable[VehicleListing], field: str) -> list[str]:
    """Distinct non-empty values of a categorical field, first-seen order."""
    seen: dict[str, None] = {}
    for v in inventory:
        value = getattr(v, field)
        if value:
            seen.setdefault(value, None)
    return list(seen)


# -------- detail view --------
def gallery_images(listing: VehicleListing, placeholder: str) -> list[str]:
    return list(listing.images) if listing.images else [placeholder]


def gallery_step(index: int, delta: int, count: int) -> int:
    if count <= 0:
        return 0
    return (index + delta) % count


# -------- add-vehicle draft --------
def to_data_uri(data: bytes, content_type: Optional[str]) -> str:
    mime = content_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


async def attach_image_file(draft: VehicleDraft, upload) -> VehicleDraft:
    """Read an uploaded image and append it to the draft as a data URI."""
    data = await upload.read()
    if data:
        draft.images.append(to_data_uri(data, getattr(upload, "content_type", None)))
    return draft


def add_image_url(draft: VehicleDraft, url: Optional[str]) -> VehicleDraft:
    url = (url or "").strip()
    if url:
        draft.images.append(url)
    return draft


def remove_image(draft: VehicleDraft, index: int) -> VehicleDraft:
    if 0 <= index < len(draft.images):
        del draft.images[index]
    return draft


def listing_from_draft(draft: VehicleDraft, listing_id: str, now: datetime) -> VehicleListing:
    if not draft.make or not draft.model or not draft.price:
        raise FormValidationError("Please fill make, model and price.")
    year = to_number(draft.year)
    year = int(year) if year is not None else now.year
    return VehicleListing(
        id=listing_id,
        title=draft.title or f"{year} {draft.make} {draft.model}",
        make=draft.make,
        model=draft.model,
        year=year,
        price=to_number(draft.price) or 0,
        mileage=int(to_number(draft.mileage) or 0),
        body=draft.body,
        fuel=draft.fuel,
        transmission=draft.transmission,
        location=draft.location,
        color=draft.color,
        vin=draft.vin,
        description=draft.description,
        images=list(draft.images),
        created_at=now,
    )


# -------- collection --------
class Inventory:
    """In-memory inventory collection with write-through persistence."""

    key = StoreEntry.INVENTORY

    def __init__(self, store: PersistentStore):
        self.store = store
        self.items: list[VehicleListing] = store.load(self.key, VehicleListing)

    def __len__(self):
        return len(self.items)

    def _persist(self):
        self.store.save(self.key, self.items)

    def get(self, listing_id: str) -> Optional[VehicleListing]:
        return next((v for v in self.items if v.id == listing_id), None)

    def add(self, session: AdminSession, draft: VehicleDraft) -> Optional[VehicleListing]:
        if not session.is_admin:
            return None
        listing = listing_from_draft(
            draft, new_id(v.id for v in self.items), datetime.now(timezone.utc)
        )
        self.items.insert(0, listing)
        self._persist()
        logger.info("added vehicle %s (%s)", listing.id, listing.title)
        return listing

    def delete(self, session: AdminSession, listing_id: str) -> bool:
        if not session.is_admin:
            return False
        kept = [v for v in self.items if v.id != listing_id]
        if len(kept) == len(self.items):
            return False
        self.items = kept
        self._persist()
        logger.info("deleted vehicle %s", listing_id)
        return True

    # Backup
    def export_json(self) -> str:
        return json.dumps(
            [v.model_dump(mode="json", by_alias=True) for v in self.items],
            ensure_ascii=False,
        )

    def import_records(self, session: AdminSession, items: Any) -> tuple[int, int]:
        """Append listings with ids not already present.

        Returns ``(inserted, skipped)``. Raises FormValidationError when the
        payload is not a JSON array.
        """
        if not session.is_admin:
            return 0, 0
        if not isinstance(items, list):
            raise FormValidationError("JSON must be an array of objects")
        seen = {v.id for v in self.items}
        inserted = skipped = 0
        for item in items:
            try:
                listing = VehicleListing.model_validate(item)
            except ValidationError:
                skipped += 1
                continue
            if listing.id in seen:
                skipped += 1
                continue
            seen.add(listing.id)
            self.items.append(listing)
            inserted += 1
        if inserted:
            self._persist()
        logger.info("inventory import: %d inserted, %d skipped", inserted, skipped)
        return inserted, skipped
