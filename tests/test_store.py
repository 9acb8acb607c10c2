from datetime import datetime, timezone

from sqlalchemy import text
from sqlmodel import Session

from storefront.catalog import Inventory
from storefront.db import init_db, make_engine
from storefront.models import Review, StoreEntry, VehicleDraft, VehicleListing
from storefront.reviews import ReviewBoard
from storefront.session import AdminSession
from storefront.store import PersistentStore


def _store():
    engine = make_engine("sqlite://")
    init_db(engine)
    return PersistentStore(engine)


def _listing(listing_id="a1", **kw):
    data = dict(
        id=listing_id,
        title="2020 Ford Focus",
        make="Ford",
        model="Focus",
        year=2020,
        price=10000,
        mileage=30000,
        images=["https://img.example/1.jpg", "data:image/png;base64,AAAA"],
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    data.update(kw)
    return VehicleListing(**data)


def test_load_missing_key_is_empty():
    store = _store()
    assert store.load(StoreEntry.INVENTORY, VehicleListing) == []


def test_save_then_load_returns_equal_collection():
    store = _store()
    items = [_listing("a1"), _listing("b2", make="Audi", price=8000)]
    assert store.save(StoreEntry.INVENTORY, items)
    # a second store on the same engine simulates a reload
    again = PersistentStore(store.engine).load(StoreEntry.INVENTORY, VehicleListing)
    assert [v.model_dump() for v in again] == [v.model_dump() for v in items]
    assert [v.id for v in again] == ["a1", "b2"]


def test_saved_blob_uses_camel_case_created_at():
    store = _store()
    store.save(StoreEntry.INVENTORY, [_listing()])
    raw = store.get_value(StoreEntry.INVENTORY)
    assert '"createdAt"' in raw
    assert "created_at" not in raw


def test_collections_use_independent_keys():
    store = _store()
    review = Review(id="r1", name="Jane", comment="Great service", created_at=datetime.now(timezone.utc))
    store.save(StoreEntry.INVENTORY, [_listing()])
    store.save(StoreEntry.REVIEWS, [review])
    assert [r.id for r in store.load(StoreEntry.REVIEWS, Review)] == ["r1"]
    assert [v.id for v in store.load(StoreEntry.INVENTORY, VehicleListing)] == ["a1"]


def test_corrupt_json_degrades_to_empty():
    store = _store()
    store.set_value(StoreEntry.REVIEWS, "{not json")
    assert store.load(StoreEntry.REVIEWS, Review) == []
    store.set_value(StoreEntry.REVIEWS, '{"id": "r1"}')
    assert store.load(StoreEntry.REVIEWS, Review) == []


def test_malformed_record_is_skipped():
    store = _store()
    store.set_value(
        StoreEntry.REVIEWS,
        '[{"id": "ok", "name": "A", "comment": "B", "createdAt": "2024-01-01T00:00:00Z"},'
        ' {"id": "bad", "rating": 9}]',
    )
    assert [r.id for r in store.load(StoreEntry.REVIEWS, Review)] == ["ok"]


def test_missing_table_never_raises():
    # no init_db: every statement fails with OperationalError
    store = PersistentStore(make_engine("sqlite://"))
    assert store.load(StoreEntry.INVENTORY, VehicleListing) == []
    assert store.save(StoreEntry.INVENTORY, [_listing()]) is False
    assert store.get_value(StoreEntry.BRAND_LOGO) is None
    assert store.remove_value(StoreEntry.BRAND_LOGO) is False


def test_failed_writes_keep_session_state():
    store = PersistentStore(make_engine("sqlite://"))
    admin = AdminSession("admin", is_admin=True)
    inv = Inventory(store)
    kept = inv.add(admin, VehicleDraft(make="Ford", model="Focus", price="9000"))
    gone = inv.add(admin, VehicleDraft(make="Audi", model="A3", price="8000"))
    assert inv.delete(admin, gone.id)
    assert inv.get(kept.id) is not None
    assert [v.id for v in inv.items] == [kept.id]

    board = ReviewBoard(store)
    r = board.submit("Jane", "Great service")
    assert board.approve(admin, r.id)
    assert [x.id for x in board.published()] == [r.id]
    assert board.pending() == []


def test_save_overwrites_previous_value():
    store = _store()
    store.save(StoreEntry.INVENTORY, [_listing("a1"), _listing("b2")])
    store.save(StoreEntry.INVENTORY, [_listing("b2")])
    assert [v.id for v in store.load(StoreEntry.INVENTORY, VehicleListing)] == ["b2"]
    with Session(store.engine) as s:
        rows = s.exec(text("SELECT key FROM store_entries")).all()
    assert len(rows) == 1


def test_remove_value():
    store = _store()
    store.set_value(StoreEntry.BRAND_LOGO, "data:image/png;base64,AAAA")
    assert store.remove_value(StoreEntry.BRAND_LOGO)
    assert store.get_value(StoreEntry.BRAND_LOGO) is None


def test_init_db_creates_file(tmp_path):
    db_file = tmp_path / "storefront.db"
    engine = make_engine(f"sqlite:///{db_file}")
    init_db(engine)
    store = PersistentStore(engine)
    store.save(StoreEntry.INVENTORY, [_listing()])
    assert db_file.exists()
    reopened = PersistentStore(make_engine(f"sqlite:///{db_file}"))
    assert reopened.load(StoreEntry.INVENTORY, VehicleListing)[0].id == "a1"


def test_read_failures_are_logged(caplog):
    store = _store()
    store.set_value(StoreEntry.INVENTORY, "[broken")
    with caplog.at_level("WARNING", logger="storefront.store"):
        assert store.load(StoreEntry.INVENTORY, VehicleListing) == []
    assert "not valid JSON" in caplog.text
