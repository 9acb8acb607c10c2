import asyncio

import pytest

from storefront.branding import Branding
from storefront.db import init_db, make_engine
from storefront.errors import PasscodeError
from storefront.links import (
    format_number,
    maps_directions_link,
    phone_digits,
    vehicle_enquiry_text,
    whatsapp_link,
)
from storefront.models import StoreEntry, VehicleDraft
from storefront.catalog import listing_from_draft
from storefront.session import AdminSession
from storefront.store import PersistentStore
from datetime import datetime, timezone


# -------- admin gate --------
def test_toggle_on_with_correct_passcode():
    s = AdminSession("s3cret")
    assert s.toggle(lambda: "s3cret") is True
    assert s.is_admin


def test_toggle_off_does_not_prompt():
    s = AdminSession("s3cret", is_admin=True)

    def prompt():
        raise AssertionError("should not prompt when leaving admin mode")

    assert s.toggle(prompt) is False
    assert not s.is_admin


@pytest.mark.parametrize("entered", ["wrong", "", "S3CRET", " s3cret", None])
def test_wrong_passcode_raises_and_keeps_state(entered):
    s = AdminSession("s3cret")
    with pytest.raises(PasscodeError):
        s.toggle(lambda: entered)
    assert not s.is_admin


# -------- branding --------
def _branding():
    engine = make_engine("sqlite://")
    init_db(engine)
    return Branding(PersistentStore(engine))


class FakeUpload:
    content_type = "image/svg+xml"
    filename = "logo.svg"

    def __init__(self, data):
        self.data = data

    async def read(self):
        return self.data


def test_logo_set_is_visible_immediately():
    b = _branding()
    admin = AdminSession("admin", is_admin=True)
    assert b.logo == ""
    assert asyncio.run(b.upload_logo(admin, FakeUpload(b"<svg/>")))
    assert b.logo == "data:image/svg+xml;base64,PHN2Zy8+"
    # a second reader over the same store sees it as well
    assert Branding(b.store).logo == b.logo
    assert b.clear_logo(admin)
    assert b.logo == ""


def test_branding_is_admin_only():
    b = _branding()
    visitor = AdminSession("admin")
    assert not b.set_logo(visitor, "data:image/png;base64,AAAA")
    assert not asyncio.run(b.upload_logo(visitor, FakeUpload(b"x")))
    assert not b.set_review_url(visitor, "https://g.page/r/xyz")
    b.store.set_value(StoreEntry.BRAND_LOGO, "data:image/png;base64,AAAA")
    assert not b.clear_logo(visitor)
    assert b.logo == "data:image/png;base64,AAAA"


def test_logo_change_logged_only_when_written(caplog):
    # no init_db: the write fails
    b = Branding(PersistentStore(make_engine("sqlite://")))
    admin = AdminSession("admin", is_admin=True)
    with caplog.at_level("INFO", logger="storefront.branding"):
        assert not b.set_logo(admin, "data:image/png;base64,AAAA")
        assert not b.clear_logo(admin)
    assert "brand logo replaced" not in caplog.text
    assert "brand logo removed" not in caplog.text

    b = _branding()
    with caplog.at_level("INFO", logger="storefront.branding"):
        assert b.set_logo(admin, "data:image/png;base64,AAAA")
    assert "brand logo replaced" in caplog.text


def test_review_url_set_and_cleared():
    b = _branding()
    admin = AdminSession("admin", is_admin=True)
    assert b.set_review_url(admin, "  https://g.page/r/xyz  ")
    assert b.review_url == "https://g.page/r/xyz"
    assert b.set_review_url(admin, "")
    assert b.review_url == ""
    assert b.store.get_value(StoreEntry.GOOGLE_REVIEW) is None


# -------- contact links --------
def test_whatsapp_link():
    assert phone_digits("+44 7950 604363") == "447950604363"
    assert whatsapp_link("+447950604363", "Is it available?") == (
        "https://wa.me/447950604363?text=Is%20it%20available%3F"
    )
    assert whatsapp_link("+447950604363").startswith(
        "https://wa.me/447950604363?text=Hi%2C%20I%27m%20interested"
    )
    assert whatsapp_link("no digits") == "#"


def test_maps_directions_link():
    assert maps_directions_link("Pladda Way, Helensburgh, G84 9SE") == (
        "https://www.google.com/maps/dir/?api=1&destination=Pladda%20Way%2C%20Helensburgh%2C%20G84%209SE"
    )
    assert maps_directions_link("") == "#"
    assert maps_directions_link(None) == "#"


def test_format_number_and_enquiry_text():
    assert format_number(12500) == "12,500"
    assert format_number(12500.0) == "12,500"
    assert format_number(999.5) == "999.50"
    assert format_number("n/a") == "n/a"
    listing = listing_from_draft(
        VehicleDraft(make="Ford", model="Focus", year="2019", price="9500"),
        "id1",
        datetime.now(timezone.utc),
    )
    assert vehicle_enquiry_text(listing) == (
        "Hi, I'm interested in the 2019 Ford Focus for £9,500. Is it available?"
    )
