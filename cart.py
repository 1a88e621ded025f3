"""
Session cart.

A cart is a plain value: every operation takes the current cart (or None when
the session has none) and returns the new one. The API layer is the only place
that reads from or writes to the session.
"""

import math
from typing import Any, Optional

from errors import ValidationError
from schemas import Cart, CartItem

SESSION_KEY = "cart"


def _require_text(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing field: {field}")
    return str(value).strip()


def _parse_price(value: Any) -> float:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Missing field: price")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid price: {value!r}")
    if math.isnan(price) or math.isinf(price) or price < 0:
        raise ValidationError(f"Invalid price: {value!r}")
    return price


def add_item(cart: Optional[Cart], restaurant_id: Any, item_id: Any, name: Any, unit_price: Any) -> Cart:
    restaurant_id = _require_text(restaurant_id, "restaurant_id")
    item_id = _require_text(item_id, "item_id")
    name = _require_text(name, "name")
    price = _parse_price(unit_price)

    # one restaurant per cart: switching restaurants starts over
    if cart is None or cart.restaurant_id != restaurant_id:
        updated = Cart(restaurant_id=restaurant_id, items=[])
    else:
        updated = cart.model_copy(deep=True)

    for line in updated.items:
        if line.item_id == item_id:
            line.quantity += 1
            break
    else:
        updated.items.append(CartItem(item_id=item_id, name=name, unit_price=price, quantity=1))
    return updated


def remove_item(cart: Optional[Cart], item_id: str) -> Optional[Cart]:
    """Drop the line for `item_id`; an emptied cart becomes None."""
    if cart is None:
        return None
    remaining = [line.model_copy() for line in cart.items if line.item_id != item_id]
    if not remaining:
        return None
    return Cart(restaurant_id=cart.restaurant_id, items=remaining)


def peek(cart: Optional[Cart]) -> Cart:
    if cart is None:
        return Cart()
    return cart


def is_empty(cart: Optional[Cart]) -> bool:
    return cart is None or not cart.items


def load(session: dict) -> Optional[Cart]:
    raw = session.get(SESSION_KEY)
    if not raw:
        return None
    return Cart.model_validate(raw)


def store(session: dict, cart: Optional[Cart]) -> None:
    if cart is None:
        session.pop(SESSION_KEY, None)
    else:
        session[SESSION_KEY] = cart.model_dump(mode="json")
