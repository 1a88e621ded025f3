"""
Order lifecycle engine.

Statuses advance along ADJACENCY; who may set which status is decided by one
authority table consulted before any change is made. Admins may skip steps
(recorded as an override on the tracking entry) but nobody leaves a terminal
status.
"""

import logging
from typing import Dict, FrozenSet, Optional

from errors import Forbidden, IllegalTransition, NotFound
from repository import CatalogRepository, OrderRepository, parse_status
from schemas import Identity, Order, OrderStatus, Role, TrackingEntry

logger = logging.getLogger(__name__)

S = OrderStatus

ADJACENCY: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.PAID, S.ACCEPTED, S.CANCELLED}),
    S.PAID: frozenset({S.ACCEPTED, S.PICKED_UP, S.CANCELLED}),
    S.ACCEPTED: frozenset({S.PREPARING, S.CANCELLED}),
    S.PREPARING: frozenset({S.PICKED_UP, S.CANCELLED}),
    S.PICKED_UP: frozenset({S.OUT_FOR_DELIVERY, S.DELIVERED, S.CANCELLED}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL: FrozenSet[OrderStatus] = frozenset({S.DELIVERED, S.CANCELLED})

# statuses whose first setter becomes the order's rider
RIDER_TRACK: FrozenSet[OrderStatus] = frozenset({S.PICKED_UP, S.OUT_FOR_DELIVERY, S.DELIVERED})

# orders a rider may pick up
AWAITING_PICKUP: FrozenSet[OrderStatus] = frozenset({S.PAID, S.ACCEPTED, S.PREPARING})

AUTHORITY: Dict[Role, FrozenSet[OrderStatus]] = {
    Role.RESTAURANT: frozenset({S.ACCEPTED, S.PREPARING}),
    Role.RIDER: RIDER_TRACK,
    Role.ADMIN: frozenset(OrderStatus),
    Role.CUSTOMER: frozenset({S.CANCELLED, S.PAID}),
    Role.SUPPORT: frozenset(),
}


class LifecycleEngine:
    def __init__(self, orders: OrderRepository, catalog: CatalogRepository):
        self.orders = orders
        self.catalog = catalog

    @staticmethod
    def check_role(target: OrderStatus, actor: Identity) -> None:
        if target not in AUTHORITY[actor.role]:
            raise Forbidden(f"Role {actor.role.value} may not set status {target.value}")

    def check_scope(self, order: Order, actor: Identity) -> None:
        """Restaurants act on their own orders, customers on their own pending ones."""
        if actor.role == Role.RESTAURANT:
            restaurant = self.catalog.get_restaurant(order.restaurant_id)
            if not restaurant or restaurant.get("owner_id") != actor.id:
                raise Forbidden("Order belongs to another restaurant")
        elif actor.role == Role.CUSTOMER:
            if order.customer_id != actor.id:
                raise Forbidden("Order belongs to another customer")
            if order.status != S.PENDING:
                raise Forbidden(f"Order can no longer be changed by the customer ({order.status})")

    def transition(self, order_id: str, new_status, actor: Identity) -> Order:
        order = self.orders.get(order_id)
        target = parse_status(new_status)
        self.check_role(target, actor)

        current = OrderStatus(order.status)
        if current in TERMINAL:
            raise IllegalTransition(current.value, target.value)
        self.check_scope(order, actor)

        if target == current:
            raise IllegalTransition(current.value, target.value)

        override = False
        if target not in ADJACENCY[current]:
            if actor.role != Role.ADMIN:
                raise IllegalTransition(current.value, target.value)
            override = True
            logger.warning("admin %s overrides order %s: %s -> %s",
                           actor.id, order.id, current.value, target.value)

        rider_id: Optional[str] = None
        # admins forcing a rider-track status are not recorded as the rider
        if target in RIDER_TRACK and order.rider_id is None and actor.role == Role.RIDER:
            rider_id = actor.id

        entry = TrackingEntry(status=target, actor_id=actor.id, override=override)
        updated = self.orders.record_transition(order, entry, rider_id=rider_id)
        logger.info("order %s moved %s -> %s by %s %s",
                    order.id, current.value, target.value, actor.role.value, actor.id)
        return updated

    def pay(self, order_id: str, actor: Identity) -> Order:
        """Payment stub: no gateway, just Pending -> Paid for the customer's own order."""
        if actor.role != Role.CUSTOMER:
            raise Forbidden("Only customers pay for orders")
        return self.transition(order_id, S.PAID, actor)

    def assign_rider(self, order_id: str, rider_id: str, actor: Identity) -> Order:
        if actor.role != Role.ADMIN:
            raise Forbidden("Only admins can assign riders")
        order = self.orders.get(order_id)
        rider = self.catalog.get_user(rider_id)
        if not rider or rider.get("role") != Role.RIDER.value:
            raise NotFound(f"Rider {rider_id} not found")
        updated = self.orders.set_rider(order, rider_id)
        logger.info("admin %s assigned rider %s to order %s", actor.id, rider_id, order.id)
        return updated

    def delete(self, order_id: str, actor: Identity) -> None:
        if actor.role != Role.CUSTOMER:
            raise Forbidden("Only the ordering customer can delete an order")
        if self.orders.delete_pending(order_id, actor.id):
            logger.info("order %s deleted by customer %s", order_id, actor.id)
            return
        order = self.orders.get(order_id)
        if order.customer_id != actor.id:
            raise NotFound(f"Order {order_id} not found")
        raise IllegalTransition(order.status, "deleted")

    def visible_to(self, order: Order, actor: Identity) -> bool:
        if actor.role in (Role.ADMIN, Role.SUPPORT):
            return True
        if actor.role == Role.CUSTOMER:
            return order.customer_id == actor.id
        if actor.role == Role.RIDER:
            return order.rider_id == actor.id or (order.rider_id is None and OrderStatus(order.status) in AWAITING_PICKUP)
        restaurant = self.catalog.get_restaurant(order.restaurant_id)
        return bool(restaurant) and restaurant.get("owner_id") == actor.id

    def get(self, order_id: str, actor: Identity) -> Order:
        order = self.orders.get(order_id)
        if not self.visible_to(order, actor):
            raise NotFound(f"Order {order_id} not found")
        return order
