"""
MongoDB access for orders and the read-mostly catalog (users, restaurants, menu).

All pymongo failures are turned into PersistenceFailure here so callers only
ever see the typed errors from `errors`.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import InvalidStatus, NotFound, PersistenceFailure, StaleOrder, ValidationError
from schemas import Order, OrderSearchResult, OrderStatus, TrackingEntry

logger = logging.getLogger(__name__)

ORDER_COLLECTION = "order"
RESTAURANT_COLLECTION = "restaurant"
MENU_COLLECTION = "menuitem"
USER_COLLECTION = "user"


@contextmanager
def _storage(action: str):
    try:
        yield
    except PyMongoError as exc:
        logger.exception("storage error while trying to %s", action)
        raise PersistenceFailure(f"Could not {action}") from exc


def is_valid_id(value: Optional[str]) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def to_object_id(value: str) -> ObjectId:
    if not is_valid_id(value):
        raise ValidationError(f"Invalid id format: {value!r}")
    return ObjectId(value)


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatus(value)


def serialize(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def sort_by_priority(orders: List[Order], priority: Dict[str, int]) -> List[Order]:
    """Stable-sort by the caller's status ranking; unranked statuses go last."""
    ranks = {OrderStatus(status).value: rank for status, rank in priority.items()}
    fallback = max(ranks.values(), default=0) + 1
    return sorted(orders, key=lambda order: ranks.get(order.status, fallback))


class OrderRepository:
    def __init__(self, database: Database):
        self.collection = database[ORDER_COLLECTION]

    @staticmethod
    def _to_document(order: Order) -> dict:
        doc = order.model_dump(exclude={"id"})
        doc["updated_at"] = datetime.now(timezone.utc)
        return doc

    @staticmethod
    def _from_document(doc: dict) -> Order:
        return Order.model_validate(serialize(doc))

    def insert(self, order: Order) -> Order:
        with _storage("create order"):
            result = self.collection.insert_one(self._to_document(order))
        created = order.model_copy(update={"id": str(result.inserted_id)})
        logger.info("order %s created for customer %s", created.id, created.customer_id)
        return created

    def get(self, order_id: str) -> Order:
        oid = to_object_id(order_id)
        with _storage("load order"):
            doc = self.collection.find_one({"_id": oid})
        if not doc:
            raise NotFound(f"Order {order_id} not found")
        return self._from_document(doc)

    def record_transition(self, order: Order, entry: TrackingEntry, rider_id: Optional[str] = None) -> Order:
        """Apply status + history atomically, guarded by the revision the order was read at."""
        fields = {"status": entry.status, "updated_at": datetime.now(timezone.utc)}
        if rider_id is not None:
            fields["rider_id"] = rider_id
        update = {
            "$set": fields,
            "$push": {"tracking_history": entry.model_dump()},
            "$inc": {"revision": 1},
        }
        self._compare_and_swap(order, update, "update order status")
        return self.get(order.id)

    def set_rider(self, order: Order, rider_id: str) -> Order:
        update = {
            "$set": {"rider_id": rider_id, "updated_at": datetime.now(timezone.utc)},
            "$inc": {"revision": 1},
        }
        self._compare_and_swap(order, update, "assign rider")
        return self.get(order.id)

    def _compare_and_swap(self, order: Order, update: dict, action: str) -> None:
        with _storage(action):
            result = self.collection.update_one(
                {"_id": ObjectId(order.id), "revision": order.revision}, update
            )
        if result.matched_count == 0:
            logger.warning("lost update on order %s at revision %s", order.id, order.revision)
            raise StaleOrder(order.id)

    def delete_pending(self, order_id: str, customer_id: str) -> bool:
        oid = to_object_id(order_id)
        with _storage("delete order"):
            result = self.collection.delete_one(
                {"_id": oid, "customer_id": customer_id, "status": OrderStatus.PENDING.value}
            )
        return result.deleted_count == 1

    def find(self, query: dict, priority: Optional[Dict[str, int]] = None) -> List[Order]:
        """Newest first, then regrouped by `priority` when one is given."""
        with _storage("list orders"):
            docs = list(self.collection.find(query).sort("created_at", DESCENDING))
        orders = [self._from_document(doc) for doc in docs]
        if priority:
            orders = sort_by_priority(orders, priority)
        return orders

    @staticmethod
    def _status_clause(statuses: Iterable[OrderStatus]) -> dict:
        return {"$in": [OrderStatus(status).value for status in statuses]}

    def list_for_customer(self, customer_id: str, statuses: Iterable[OrderStatus],
                          priority: Optional[Dict[str, int]] = None) -> List[Order]:
        return self.find({"customer_id": customer_id, "status": self._status_clause(statuses)}, priority)

    def list_for_restaurant(self, restaurant_id: str, statuses: Iterable[OrderStatus],
                            priority: Optional[Dict[str, int]] = None) -> List[Order]:
        return self.find({"restaurant_id": restaurant_id, "status": self._status_clause(statuses)}, priority)

    def list_for_riders(self, statuses: Iterable[OrderStatus], rider_id: Optional[str] = None,
                        priority: Optional[Dict[str, int]] = None) -> List[Order]:
        query = {"status": self._status_clause(statuses)}
        if rider_id is not None:
            query["rider_id"] = rider_id
        return self.find(query, priority)

    def search(self, status: Optional[str] = None, order_id: Optional[str] = None) -> OrderSearchResult:
        """Admin filter. A malformed id yields no results and sets invalid_id."""
        query = {}
        if status and status != "All":
            query["status"] = parse_status(status).value
        if order_id and order_id.strip():
            order_id = order_id.strip()
            if not is_valid_id(order_id):
                return OrderSearchResult(orders=[], invalid_id=True)
            query["_id"] = ObjectId(order_id)
        return OrderSearchResult(orders=self.find(query))


class CatalogRepository:
    """Users, restaurants and menu items, as read by the ordering flow."""

    def __init__(self, database: Database):
        self.database = database

    def _find_one(self, collection: str, query: dict, action: str) -> Optional[dict]:
        with _storage(action):
            return self.database[collection].find_one(query)

    def get_user(self, user_id: str) -> Optional[dict]:
        if not is_valid_id(user_id):
            return None
        return self._find_one(USER_COLLECTION, {"_id": ObjectId(user_id)}, "load user")

    def get_restaurant(self, restaurant_id: str) -> Optional[dict]:
        if not is_valid_id(restaurant_id):
            return None
        return self._find_one(RESTAURANT_COLLECTION, {"_id": ObjectId(restaurant_id)}, "load restaurant")

    def restaurant_for_owner(self, owner_id: str) -> Optional[dict]:
        return self._find_one(RESTAURANT_COLLECTION, {"owner_id": owner_id}, "load restaurant")

    def get_menu_item(self, menu_item_id: str) -> Optional[dict]:
        if not is_valid_id(menu_item_id):
            return None
        return self._find_one(MENU_COLLECTION, {"_id": ObjectId(menu_item_id)}, "load menu item")

    def list_restaurants(self, limit: int = 50) -> List[dict]:
        with _storage("list restaurants"):
            return [serialize(doc) for doc in self.database[RESTAURANT_COLLECTION].find({}).limit(limit)]

    def list_menu(self, restaurant_id: str) -> List[dict]:
        to_object_id(restaurant_id)
        with _storage("list menu"):
            docs = self.database[MENU_COLLECTION].find({"restaurant_id": restaurant_id}).sort("name", 1)
            return [serialize(doc) for doc in docs]
