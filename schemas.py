"""
Database Schemas for the Food Ordering App

Each Pydantic model represents a collection in MongoDB. The collection name is the
lowercased class name by convention in this project.

Collections:
- user
- restaurant
- menuitem
- order

The cart is not a collection: it lives in the signed session cookie.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Role(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    RIDER = "rider"
    ADMIN = "admin"
    SUPPORT = "support"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    ACCEPTED = "Accepted"
    PREPARING = "Preparing"
    PICKED_UP = "PickedUp"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class Identity(BaseModel):
    """Authenticated actor bound to the current session."""
    id: str
    role: Role


# ---------- Persisted collaborators (read-mostly) ----------

class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Display name")
    username: str = Field(..., description="Unique login name")
    role: Role = Field(Role.CUSTOMER, description="customer | restaurant | rider | support | admin")
    phone: Optional[str] = Field(None, description="Contact phone")
    address: Optional[str] = Field(None, description="Default delivery address")


class Restaurant(BaseModel):
    name: str = Field(..., description="Restaurant name")
    cuisine: Optional[str] = Field(None, description="Cuisine type, e.g., Italian, Indian")
    address: Optional[str] = Field(None, description="Restaurant address")
    phone: Optional[str] = Field(None, description="Contact phone")
    description: Optional[str] = Field(None, description="Short description")
    owner_id: Optional[str] = Field(None, description="User id of the restaurant account")


class MenuItem(BaseModel):
    restaurant_id: str = Field(..., description="Linked restaurant id as string")
    name: str = Field(..., description="Dish name")
    description: Optional[str] = Field(None, description="Dish description")
    price: float = Field(..., ge=0, description="Price in dollars")
    is_veg: bool = Field(False, description="Vegetarian dish flag")
    spicy_level: int = Field(0, ge=0, le=3, description="Spice level 0-3")


# ---------- Cart (session-scoped) ----------

class CartItem(BaseModel):
    item_id: str
    name: str
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    restaurant_id: Optional[str] = None
    items: List[CartItem] = []

    @computed_field
    @property
    def total_price(self) -> float:
        return sum(item.unit_price * item.quantity for item in self.items)


# ---------- Orders ----------

class OrderLineItem(BaseModel):
    """Order-time snapshot of a dish; never re-read from the live menu."""
    menu_item_id: Optional[str] = None
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class TrackingEntry(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: OrderStatus
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor_id: Optional[str] = None
    override: bool = False


class Order(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: Optional[str] = None
    customer_id: str
    restaurant_id: str
    rider_id: Optional[str] = None
    items: List[OrderLineItem]
    total_price: float
    status: OrderStatus = OrderStatus.PENDING
    tracking_history: List[TrackingEntry] = []
    delivery_address: Optional[str] = None
    revision: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------- Request bodies ----------

class SessionRequest(BaseModel):
    user_id: str


class AddToCartRequest(BaseModel):
    # validated by cart.add_item
    restaurant_id: Optional[str] = None
    item_id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[Any] = None


class RemoveFromCartRequest(BaseModel):
    item_id: str


class CheckoutRequest(BaseModel):
    delivery_address: Optional[str] = None


class PlaceItemRequest(BaseModel):
    restaurant_id: str
    menu_item_id: str
    quantity: int = 1
    delivery_address: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str


class AssignRiderRequest(BaseModel):
    rider_id: str


class OrderSearchResult(BaseModel):
    orders: List[Order]
    invalid_id: bool = False
