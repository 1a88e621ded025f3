import logging
import os
import secrets
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from starlette.middleware.sessions import SessionMiddleware

import cart as cart_store
import identity
from checkout import checkout, place_item
from database import create_document, db
from errors import NotFound, OrderingError, PersistenceFailure, ordering_error_handler
from lifecycle import AWAITING_PICKUP, LifecycleEngine
from repository import CatalogRepository, OrderRepository
from schemas import (
    AddToCartRequest,
    AssignRiderRequest,
    Cart,
    CheckoutRequest,
    Identity,
    MenuItem,
    Order,
    OrderSearchResult,
    OrderStatus,
    PlaceItemRequest,
    RemoveFromCartRequest,
    Restaurant,
    Role,
    SessionRequest,
    StatusUpdateRequest,
    User,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def session_secret() -> str:
    """Key for the signed session cookie; a random per-process key when unset."""
    secret = os.getenv("SESSION_SECRET")
    if not secret:
        logger.warning("SESSION_SECRET is not set; using a random key, sessions end on restart")
        secret = secrets.token_urlsafe(32)
    return secret


app = FastAPI(title="Food Ordering API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=session_secret())
app.add_exception_handler(OrderingError, ordering_error_handler)

S = OrderStatus

# Display rankings: in-flight orders surface before completed ones
CUSTOMER_HISTORY_PRIORITY = {S.PAID: 1, S.ACCEPTED: 2, S.PREPARING: 3, S.PICKED_UP: 4,
                             S.OUT_FOR_DELIVERY: 5, S.DELIVERED: 6}
RESTAURANT_PRIORITY = {S.PENDING: 1, S.PAID: 2, S.ACCEPTED: 3, S.PREPARING: 4, S.PICKED_UP: 5,
                       S.OUT_FOR_DELIVERY: 6, S.DELIVERED: 7}
RIDER_PICKUP_PRIORITY = {S.PAID: 1, S.ACCEPTED: 2, S.PREPARING: 3}
RIDER_DELIVERY_PRIORITY = {S.PICKED_UP: 1, S.OUT_FOR_DELIVERY: 2, S.DELIVERED: 3}


# ---------- Dependencies ----------

def get_database() -> Database:
    if db is None:
        raise PersistenceFailure("Database not available")
    return db


def get_orders(database: Database = Depends(get_database)) -> OrderRepository:
    return OrderRepository(database)


def get_catalog(database: Database = Depends(get_database)) -> CatalogRepository:
    return CatalogRepository(database)


def get_engine(orders: OrderRepository = Depends(get_orders),
               catalog: CatalogRepository = Depends(get_catalog)) -> LifecycleEngine:
    return LifecycleEngine(orders, catalog)


customer_only = identity.require_role(Role.CUSTOMER)


@app.get("/")
def read_root():
    return {"message": "Food Ordering API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    if db is None:
        return response

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = db.name
    response["connection_status"] = "Connected"
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("database check failed: %s", e)
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# ---------- Session ----------

@app.post("/api/session", response_model=Identity)
async def open_session(body: SessionRequest, request: Request,
                       catalog: CatalogRepository = Depends(get_catalog)):
    user = catalog.get_user(body.user_id)
    if not user:
        raise NotFound("User not found")
    request.session.clear()
    return identity.bind(request.session, body.user_id, Role(user["role"]))


@app.delete("/api/session", response_model=dict)
async def close_session(request: Request):
    request.session.clear()
    return {"status": "ok"}


# ---------- Seed Sample Data ----------

@app.post("/api/seed", response_model=dict)
async def seed_sample_data(database: Database = Depends(get_database)):
    if database["restaurant"].count_documents({}) > 0:
        return {"status": "ok", "message": "Data already exists"}

    users = {
        role.value: create_document("user", User(name=f"Sample {role.value}", username=role.value, role=role),
                                    database=database)
        for role in Role
    }

    r1 = Restaurant(name="Sunset Pizzeria", cuisine="Italian", address="123 Main St",
                    owner_id=users[Role.RESTAURANT.value])
    r2 = Restaurant(name="Spice Garden", cuisine="Indian", address="55 Curry Ave")
    r1_id = create_document("restaurant", r1, database=database)
    r2_id = create_document("restaurant", r2, database=database)

    items = [
        MenuItem(restaurant_id=r1_id, name="Margherita Pizza", description="Classic with fresh basil", price=12.5, is_veg=True),
        MenuItem(restaurant_id=r1_id, name="Pepperoni Pizza", description="Spicy pepperoni, mozzarella", price=14.0),
        MenuItem(restaurant_id=r2_id, name="Butter Chicken", description="Creamy and rich", price=13.75, spicy_level=1),
        MenuItem(restaurant_id=r2_id, name="Paneer Tikka", description="Grilled cottage cheese", price=11.0, is_veg=True, spicy_level=2),
    ]
    for it in items:
        create_document("menuitem", it, database=database)

    return {"status": "ok", "message": "Seeded", "users": users, "restaurants": [r1_id, r2_id]}


# ---------- Restaurants & Menu ----------

@app.get("/api/restaurants", response_model=List[dict])
async def list_restaurants(catalog: CatalogRepository = Depends(get_catalog)):
    return catalog.list_restaurants()


@app.get("/api/menu/{restaurant_id}", response_model=List[dict])
async def get_menu_for_restaurant(restaurant_id: str, catalog: CatalogRepository = Depends(get_catalog)):
    return catalog.list_menu(restaurant_id)


# ---------- Cart (session) ----------

@app.get("/api/cart", response_model=Cart)
async def get_cart(request: Request, user: Identity = Depends(customer_only)):
    return cart_store.peek(cart_store.load(request.session))


@app.post("/api/cart/add", response_model=Cart)
async def add_to_cart(body: AddToCartRequest, request: Request, user: Identity = Depends(customer_only)):
    updated = cart_store.add_item(
        cart_store.load(request.session), body.restaurant_id, body.item_id, body.name, body.price
    )
    cart_store.store(request.session, updated)
    return updated


@app.post("/api/cart/remove", response_model=Cart)
async def remove_from_cart(body: RemoveFromCartRequest, request: Request,
                           user: Identity = Depends(customer_only)):
    updated = cart_store.remove_item(cart_store.load(request.session), body.item_id)
    cart_store.store(request.session, updated)
    return cart_store.peek(updated)


@app.post("/api/cart/checkout", response_model=Order)
async def checkout_cart(request: Request, body: CheckoutRequest = CheckoutRequest(),
                        user: Identity = Depends(customer_only),
                        orders: OrderRepository = Depends(get_orders)):
    order = checkout(cart_store.load(request.session), user.id, orders, body.delivery_address)
    cart_store.store(request.session, None)
    return order


# ---------- Orders ----------

@app.post("/api/orders", response_model=Order)
async def place_order(body: PlaceItemRequest, user: Identity = Depends(customer_only),
                      orders: OrderRepository = Depends(get_orders),
                      catalog: CatalogRepository = Depends(get_catalog)):
    return place_item(user.id, body.restaurant_id, body.menu_item_id, body.quantity,
                      orders, catalog, body.delivery_address)


@app.get("/api/orders", response_model=List[Order])
async def list_pending_orders(user: Identity = Depends(customer_only),
                              orders: OrderRepository = Depends(get_orders)):
    return orders.list_for_customer(user.id, [S.PENDING])


@app.get("/api/orders/paid", response_model=List[Order])
async def list_paid_orders(user: Identity = Depends(customer_only),
                           orders: OrderRepository = Depends(get_orders)):
    return orders.list_for_customer(user.id, CUSTOMER_HISTORY_PRIORITY, CUSTOMER_HISTORY_PRIORITY)


@app.get("/api/orders/{order_id}", response_model=Order)
async def get_order(order_id: str, user: Identity = Depends(identity.current_identity),
                    engine: LifecycleEngine = Depends(get_engine)):
    return engine.get(order_id, user)


@app.post("/api/orders/{order_id}/pay", response_model=Order)
async def pay_order(order_id: str, user: Identity = Depends(customer_only),
                    engine: LifecycleEngine = Depends(get_engine)):
    return engine.pay(order_id, user)


@app.post("/api/orders/{order_id}/status", response_model=Order)
async def update_order_status(order_id: str, body: StatusUpdateRequest,
                              user: Identity = Depends(identity.current_identity),
                              engine: LifecycleEngine = Depends(get_engine)):
    return engine.transition(order_id, body.status, user)


@app.post("/api/orders/{order_id}/rider", response_model=Order)
async def assign_rider(order_id: str, body: AssignRiderRequest,
                       user: Identity = Depends(identity.require_role(Role.ADMIN)),
                       engine: LifecycleEngine = Depends(get_engine)):
    return engine.assign_rider(order_id, body.rider_id, user)


@app.delete("/api/orders/{order_id}", response_model=dict)
async def delete_order(order_id: str, user: Identity = Depends(customer_only),
                       engine: LifecycleEngine = Depends(get_engine)):
    engine.delete(order_id, user)
    return {"status": "deleted", "id": order_id}


# ---------- Restaurant ----------

@app.get("/api/restaurant/orders", response_model=List[Order])
async def list_restaurant_orders(user: Identity = Depends(identity.require_role(Role.RESTAURANT)),
                                 orders: OrderRepository = Depends(get_orders),
                                 catalog: CatalogRepository = Depends(get_catalog)):
    restaurant = catalog.restaurant_for_owner(user.id)
    if not restaurant:
        raise NotFound("No restaurant is linked to this account")
    return orders.list_for_restaurant(str(restaurant["_id"]), RESTAURANT_PRIORITY, RESTAURANT_PRIORITY)


# ---------- Rider ----------

@app.get("/api/rider/pickup", response_model=List[Order])
async def list_pickup_queue(user: Identity = Depends(identity.require_role(Role.RIDER)),
                            orders: OrderRepository = Depends(get_orders)):
    queue = orders.list_for_riders(AWAITING_PICKUP, priority=RIDER_PICKUP_PRIORITY)
    return [order for order in queue if order.rider_id in (None, user.id)]


@app.get("/api/rider/deliveries", response_model=List[Order])
async def list_deliveries(user: Identity = Depends(identity.require_role(Role.RIDER)),
                          orders: OrderRepository = Depends(get_orders)):
    return orders.list_for_riders(RIDER_DELIVERY_PRIORITY, rider_id=user.id, priority=RIDER_DELIVERY_PRIORITY)


# ---------- Admin ----------

@app.get("/api/admin/orders", response_model=OrderSearchResult)
async def search_orders(status: Optional[str] = None, order_id: Optional[str] = Query(None, alias="id"),
                        user: Identity = Depends(identity.require_role(Role.ADMIN, Role.SUPPORT)),
                        orders: OrderRepository = Depends(get_orders)):
    return orders.search(status=status, order_id=order_id)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
