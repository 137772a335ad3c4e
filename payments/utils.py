import re
import uuid
from decimal import Decimal, ROUND_HALF_UP

ADDRESS_PARTS = ("address", "city", "state", "zipCode")
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.I)


def generate_order_id() -> str:
    # storefront order ids are UUID4 strings
    return str(uuid.uuid4())


def is_uuid(value) -> bool:
    return bool(value) and bool(UUID_RE.match(str(value)))


def format_address(address: dict | None) -> str | None:
    """Collapse an address mapping into ``"street, city, ST, 12345"``."""
    if not address:
        return None
    parts = [str(address.get(k) or "").strip() for k in ADDRESS_PARTS]
    return ", ".join(p for p in parts if p) or None


def amount_str(amount) -> str:
    q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return format(q, "f")


def strip_whitespace(value) -> str:
    return re.sub(r"\s+", "", str(value or ""))


def card_last4(card_number) -> str:
    return strip_whitespace(card_number)[-4:]
