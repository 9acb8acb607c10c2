import re
from urllib.parse import quote

DEFAULT_ENQUIRY = "Hi, I'm interested in one of your vehicles."


def phone_digits(number) -> str:
    return re.sub(r"[^0-9]", "", str(number or ""))


def whatsapp_link(number, text: str | None = None) -> str:
    digits = phone_digits(number)
    if not digits:
        return "#"
    return f"https://wa.me/{digits}?text={quote(text or DEFAULT_ENQUIRY, safe='')}"


def maps_directions_link(address: str | None) -> str:
    if not address:
        return "#"
    return f"https://www.google.com/maps/dir/?api=1&destination={quote(address, safe='')}"


def format_number(n) -> str:
    try:
        if float(n).is_integer():
            return f"{int(n):,}"
        return f"{float(n):,.2f}"
    except (TypeError, ValueError):
        return str(n)


def vehicle_enquiry_text(listing) -> str:
    return f"Hi, I'm interested in the {listing.title} for £{format_number(listing.price)}. Is it available?"
