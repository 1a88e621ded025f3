import mongomock
from pymongo.errors import PyMongoError

import main
from schemas import OrderStatus


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Food Ordering API is running"}
    assert client.get("/test").json()["backend"] == "✅ Running"


def test_routes_require_a_session(client):
    response = client.get("/api/cart")

    assert response.status_code == 401
    assert response.json()["code"] == "NOT_AUTHENTICATED"


def test_unknown_user_cannot_open_session(client):
    response = client.post("/api/session", json={"user_id": "0" * 24})

    assert response.status_code == 404


def test_cart_to_delivery(client, login, actors, restaurant_id):
    login(actors["customer"])
    assert client.get("/api/cart").json() == {"restaurant_id": None, "items": [], "total_price": 0}

    client.post("/api/cart/add", json={"restaurant_id": restaurant_id, "item_id": "i1", "name": "Pizza", "price": 10})
    cart = client.post(
        "/api/cart/add", json={"restaurant_id": restaurant_id, "item_id": "i1", "name": "Pizza", "price": "10"}
    ).json()
    assert cart["items"][0]["quantity"] == 2
    assert cart["total_price"] == 20

    response = client.post("/api/cart/checkout", json={"delivery_address": "1 Elm St"})
    assert response.status_code == 200
    order = response.json()
    assert order["status"] == "Pending"
    assert order["total_price"] == 20
    assert client.get("/api/cart").json()["items"] == []
    assert [o["id"] for o in client.get("/api/orders").json()] == [order["id"]]

    assert client.post(f"/api/orders/{order['id']}/pay").json()["status"] == "Paid"
    assert [o["id"] for o in client.get("/api/orders/paid").json()] == [order["id"]]

    login(actors["restaurant"])
    assert client.post(f"/api/orders/{order['id']}/status", json={"status": "Accepted"}).status_code == 200
    assert client.post(f"/api/orders/{order['id']}/status", json={"status": "Preparing"}).status_code == 200
    assert [o["id"] for o in client.get("/api/restaurant/orders").json()] == [order["id"]]

    login(actors["rider"])
    assert [o["id"] for o in client.get("/api/rider/pickup").json()] == [order["id"]]
    response = client.post(f"/api/orders/{order['id']}/status", json={"status": "PickedUp"})
    assert response.json()["rider_id"] == actors["rider"].id
    client.post(f"/api/orders/{order['id']}/status", json={"status": "Delivered"})
    deliveries = client.get("/api/rider/deliveries").json()
    assert [(o["id"], o["status"]) for o in deliveries] == [(order["id"], "Delivered")]

    login(actors["admin"])
    response = client.post(f"/api/orders/{order['id']}/status", json={"status": "Pending"})
    assert response.status_code == 409
    assert response.json()["code"] == "ILLEGAL_TRANSITION"


def test_empty_checkout_is_a_typed_error(client, login, actors, database):
    login(actors["customer"])

    response = client.post("/api/cart/checkout")

    assert response.status_code == 400
    assert response.json()["code"] == "EMPTY_CART"
    assert database["order"].count_documents({}) == 0


def test_add_to_cart_with_missing_fields(client, login, actors):
    login(actors["customer"])

    response = client.post("/api/cart/add", json={"item_id": "i1", "name": "Pizza", "price": 10})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_remove_last_item_empties_cart(client, login, actors, restaurant_id):
    login(actors["customer"])
    client.post("/api/cart/add", json={"restaurant_id": restaurant_id, "item_id": "i1", "name": "Pizza", "price": 10})

    cart = client.post("/api/cart/remove", json={"item_id": "i1"}).json()

    assert cart == {"restaurant_id": None, "items": [], "total_price": 0}


def test_customer_forbidden_and_invalid_status(client, login, actors, make_order):
    order = make_order()
    login(actors["customer"])

    response = client.post(f"/api/orders/{order.id}/status", json={"status": "Accepted"})
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    response = client.post(f"/api/orders/{order.id}/status", json={"status": "Lost"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"


def test_place_and_delete_single_item_order(client, login, actors, restaurant_id, menu_item_id):
    login(actors["customer"])

    order = client.post(
        "/api/orders", json={"restaurant_id": restaurant_id, "menu_item_id": menu_item_id, "quantity": 2}
    ).json()
    assert order["total_price"] == 25.0

    assert client.delete(f"/api/orders/{order['id']}").json() == {"status": "deleted", "id": order["id"]}
    assert client.get(f"/api/orders/{order['id']}").status_code == 404


def test_admin_search_and_rider_assignment(client, login, actors, make_order):
    order = make_order(status=OrderStatus.PAID)
    login(actors["admin"])

    result = client.get("/api/admin/orders", params={"id": "not-a-valid-id"}).json()
    assert result == {"orders": [], "invalid_id": True}

    result = client.get("/api/admin/orders", params={"status": "Paid", "id": order.id}).json()
    assert [o["id"] for o in result["orders"]] == [order.id]
    assert result["invalid_id"] is False

    response = client.post(f"/api/orders/{order.id}/rider", json={"rider_id": actors["rider"].id})
    assert response.json()["rider_id"] == actors["rider"].id
    assert response.json()["status"] == "Paid"


def test_role_gates(client, login, actors):
    login(actors["rider"])
    assert client.get("/api/admin/orders").status_code == 403
    assert client.get("/api/cart").status_code == 403

    login(actors["support"])
    assert client.get("/api/admin/orders").status_code == 200


def test_seed_and_catalog(client):
    seeded = client.post("/api/seed").json()
    assert seeded["message"] == "Seeded"
    assert client.post("/api/seed").json()["message"] == "Data already exists"

    restaurants = client.get("/api/restaurants").json()
    assert {r["name"] for r in restaurants} == {"Sunset Pizzeria", "Spice Garden"}

    menu = client.get(f"/api/menu/{seeded['restaurants'][0]}").json()
    assert [item["name"] for item in menu] == ["Margherita Pizza", "Pepperoni Pizza"]

    assert client.get("/api/menu/bad-id").status_code == 400


def test_failed_checkout_keeps_session_cart(client, login, actors, restaurant_id, monkeypatch):
    login(actors["customer"])
    client.post("/api/cart/add", json={"restaurant_id": restaurant_id, "item_id": "i1", "name": "Pizza", "price": 10})

    def broken_insert(self, document, *args, **kwargs):
        raise PyMongoError("write failed")

    monkeypatch.setattr(mongomock.Collection, "insert_one", broken_insert)

    response = client.post("/api/cart/checkout")
    assert response.status_code == 503
    assert response.json()["code"] == "PERSISTENCE_FAILURE"

    cart = client.get("/api/cart").json()
    assert [line["item_id"] for line in cart["items"]] == ["i1"]
    assert cart["total_price"] == 10


def test_session_secret_from_environment(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "configured")

    assert main.session_secret() == "configured"


def test_session_secret_is_random_when_unset(monkeypatch, caplog):
    monkeypatch.delenv("SESSION_SECRET", raising=False)

    with caplog.at_level("WARNING", logger="main"):
        first = main.session_secret()
    second = main.session_secret()

    assert first != second
    assert first != "sess-secret"
    assert len(first) >= 32
    assert "SESSION_SECRET is not set" in caplog.text
