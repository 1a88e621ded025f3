import pytest

from errors import InvalidStatus
from schemas import OrderStatus

S = OrderStatus


def test_customer_listing_follows_status_priority(orders, make_order, actors):
    delivered = make_order(status=S.DELIVERED, minutes=30)
    paid = make_order(status=S.PAID, minutes=0)
    picked = make_order(status=S.PICKED_UP, minutes=20)
    newer_paid = make_order(status=S.PAID, minutes=40)
    make_order(status=S.PENDING, minutes=50)
    make_order(status=S.PAID, customer=actors["other_customer"])

    result = orders.list_for_customer(
        actors["customer"].id,
        ["Paid", "PickedUp", "Delivered"],
        priority={"Paid": 1, "PickedUp": 2, "Delivered": 3},
    )

    assert [order.id for order in result] == [newer_paid.id, paid.id, picked.id, delivered.id]


def test_listing_without_priority_is_newest_first(orders, make_order, actors):
    first = make_order(minutes=0)
    second = make_order(minutes=5)

    result = orders.list_for_customer(actors["customer"].id, [S.PENDING])

    assert [order.id for order in result] == [second.id, first.id]


def test_restaurant_listing_is_scoped(orders, make_order, restaurant_id):
    mine = make_order(status=S.ACCEPTED)

    assert [o.id for o in orders.list_for_restaurant(restaurant_id, [S.ACCEPTED])] == [mine.id]
    assert orders.list_for_restaurant("someone-else", [S.ACCEPTED]) == []


def test_rider_listing_filters_by_rider(orders, make_order, actors):
    mine = make_order(status=S.PICKED_UP, rider_id=actors["rider"].id)
    make_order(status=S.PICKED_UP, rider_id=actors["other_rider"].id)
    waiting = make_order(status=S.PAID)

    assert [o.id for o in orders.list_for_riders([S.PICKED_UP], rider_id=actors["rider"].id)] == [mine.id]
    assert [o.id for o in orders.list_for_riders([S.PAID, S.ACCEPTED, S.PREPARING])] == [waiting.id]


def test_admin_search_with_malformed_id_returns_empty_flag(orders, make_order):
    make_order()

    result = orders.search(order_id="not-a-valid-id")

    assert result.orders == []
    assert result.invalid_id is True


def test_admin_search_by_id_and_status(orders, make_order):
    pending = make_order()
    paid = make_order(status=S.PAID, minutes=1)

    by_id = orders.search(order_id=f"  {paid.id} ")
    assert [o.id for o in by_id.orders] == [paid.id]
    assert by_id.invalid_id is False

    assert [o.id for o in orders.search(status="Pending").orders] == [pending.id]
    assert len(orders.search(status="All").orders) == 2
    assert len(orders.search().orders) == 2
    assert orders.search(status="Paid", order_id=pending.id).orders == []


def test_admin_search_rejects_unknown_status(orders):
    with pytest.raises(InvalidStatus):
        orders.search(status="Shipped")
