"""
Turning a cart, or a single menu item, into a persisted Pending order.
"""

import logging
from typing import Optional

from cart import is_empty
from errors import EmptyCart, NotFound, ValidationError
from repository import CatalogRepository, OrderRepository
from schemas import Cart, Order, OrderLineItem, OrderStatus, TrackingEntry

logger = logging.getLogger(__name__)


def _new_order(customer_id: str, restaurant_id: str, items, delivery_address: Optional[str]) -> Order:
    return Order(
        customer_id=customer_id,
        restaurant_id=restaurant_id,
        items=items,
        total_price=sum(line.price * line.quantity for line in items),
        status=OrderStatus.PENDING,
        tracking_history=[TrackingEntry(status=OrderStatus.PENDING, actor_id=customer_id)],
        delivery_address=delivery_address,
    )


def checkout(cart: Optional[Cart], customer_id: str, orders: OrderRepository,
             delivery_address: Optional[str] = None) -> Order:
    """
    Persist the cart as a Pending order.

    Prices are copied from the cart lines as they are; the live menu is not
    consulted. The caller clears the session cart only after this returns, so a
    PersistenceFailure leaves the cart in place for a retry.
    """
    if is_empty(cart):
        raise EmptyCart()

    items = [
        OrderLineItem(menu_item_id=line.item_id, name=line.name, price=line.unit_price, quantity=line.quantity)
        for line in cart.items
    ]
    order = orders.insert(_new_order(customer_id, cart.restaurant_id, items, delivery_address))
    logger.info("checkout of %d line(s) -> order %s", len(items), order.id)
    return order


def place_item(customer_id: str, restaurant_id: str, menu_item_id: str, quantity: int,
               orders: OrderRepository, catalog: CatalogRepository,
               delivery_address: Optional[str] = None) -> Order:
    """Order one menu item right away, priced from the menu at this moment."""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if not catalog.get_restaurant(restaurant_id):
        raise NotFound(f"Restaurant {restaurant_id} not found")
    menu_item = catalog.get_menu_item(menu_item_id)
    if not menu_item or menu_item.get("restaurant_id") != restaurant_id:
        raise NotFound(f"Menu item {menu_item_id} not found")

    line = OrderLineItem(
        menu_item_id=str(menu_item["_id"]),
        name=menu_item["name"],
        price=menu_item["price"],
        quantity=quantity,
    )
    return orders.insert(_new_order(customer_id, restaurant_id, [line], delivery_address))
