from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import create_document
from lifecycle import LifecycleEngine
from repository import CatalogRepository, OrderRepository
from schemas import Identity, MenuItem, Order, OrderLineItem, OrderStatus, Restaurant, Role, TrackingEntry, User


@pytest.fixture
def database():
    return mongomock.MongoClient().get_database("food_test")


@pytest.fixture
def orders(database):
    return OrderRepository(database)


@pytest.fixture
def catalog(database):
    return CatalogRepository(database)


@pytest.fixture
def engine(orders, catalog):
    return LifecycleEngine(orders, catalog)


@pytest.fixture
def actors(database):
    """One user per role, plus a second customer and a second rider."""
    def make(username, role):
        user_id = create_document("user", User(name=username, username=username, role=role), database=database)
        return Identity(id=user_id, role=role)

    return {
        "customer": make("carol", Role.CUSTOMER),
        "other_customer": make("dave", Role.CUSTOMER),
        "restaurant": make("pizzeria", Role.RESTAURANT),
        "other_restaurant": make("curryhouse", Role.RESTAURANT),
        "rider": make("rita", Role.RIDER),
        "other_rider": make("ron", Role.RIDER),
        "admin": make("root", Role.ADMIN),
        "support": make("sam", Role.SUPPORT),
    }


@pytest.fixture
def restaurant_id(database, actors):
    return create_document(
        "restaurant", Restaurant(name="Sunset Pizzeria", owner_id=actors["restaurant"].id), database=database
    )


@pytest.fixture
def menu_item_id(database, restaurant_id):
    return create_document(
        "menuitem", MenuItem(restaurant_id=restaurant_id, name="Margherita Pizza", price=12.5), database=database
    )


@pytest.fixture
def make_order(orders, actors, restaurant_id):
    base = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def make(status=OrderStatus.PENDING, customer=None, minutes=0, rider_id=None):
        customer = customer or actors["customer"]
        order = Order(
            customer_id=customer.id,
            restaurant_id=restaurant_id,
            items=[OrderLineItem(name="Pizza", price=10, quantity=2)],
            total_price=20,
            status=status,
            rider_id=rider_id,
            tracking_history=[TrackingEntry(status=status)],
            created_at=base + timedelta(minutes=minutes),
        )
        return orders.insert(order)

    return make


@pytest.fixture
def client(database):
    main.app.dependency_overrides[main.get_database] = lambda: database
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    def _login(actor: Identity):
        response = client.post("/api/session", json={"user_id": actor.id})
        assert response.status_code == 200
        return response.json()

    return _login
