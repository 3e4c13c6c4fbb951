"""Tests for the cart endpoints."""

from decimal import Decimal

from conftest import auth_headers

CART_URL = "/api/v1/cart"


def test_add_and_read_cart(client, user, make_kit):
    kit = make_kit(price="12.50", stock=5)
    headers = auth_headers(user)

    response = client.post(CART_URL, json={"kit_id": str(kit.id), "quantity": 2}, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total_quantity"] == 2
    assert Decimal(data["total_price"]) == Decimal("25.00")
    assert data["items"][0]["kit_name"] == kit.name


def test_adding_same_kit_merges_lines(client, user, make_kit):
    kit = make_kit(stock=5)
    headers = auth_headers(user)

    client.post(CART_URL, json={"kit_id": str(kit.id), "quantity": 1}, headers=headers)
    data = client.post(
        CART_URL, json={"kit_id": str(kit.id), "quantity": 2}, headers=headers
    ).json()

    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 3


def test_add_beyond_stock_rejected(client, user, make_kit):
    kit = make_kit(stock=2)

    response = client.post(
        CART_URL, json={"kit_id": str(kit.id), "quantity": 3}, headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InsufficientStock"


def test_unknown_kit(client, user):
    response = client.post(
        CART_URL,
        json={"kit_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth_headers(user),
    )
    assert response.status_code == 404


def test_update_quantity_and_remove(client, user, make_kit, fill_cart):
    kit = make_kit(price="10", stock=5)
    fill_cart(user, (kit, 1))
    headers = auth_headers(user)

    updated = client.patch(f"{CART_URL}/{kit.id}", json={"quantity": 4}, headers=headers)
    assert updated.json()["total_quantity"] == 4
    assert Decimal(updated.json()["total_price"]) == Decimal("40")

    removed = client.delete(f"{CART_URL}/{kit.id}", headers=headers)
    assert removed.json()["items"] == []


def test_cart_priced_at_current_price(client, session, user, make_kit, fill_cart):
    kit = make_kit(price="10", stock=5)
    fill_cart(user, (kit, 1))
    kit.price = Decimal("15")
    session.add(kit)
    session.commit()

    data = client.get(CART_URL, headers=auth_headers(user)).json()

    assert Decimal(data["total_price"]) == Decimal("15")


def test_clear_cart(client, user, make_kit, fill_cart):
    fill_cart(user, (make_kit(), 1), (make_kit(), 2))

    response = client.delete(CART_URL, headers=auth_headers(user))

    assert response.json()["total_quantity"] == 0
    assert client.get(CART_URL, headers=auth_headers(user)).json()["items"] == []


def test_admin_has_no_cart(client, admin):
    assert client.get(CART_URL, headers=auth_headers(admin)).status_code == 403


def test_inactive_kit_rejected(client, session, user, make_kit):
    kit = make_kit()
    kit.is_active = False
    session.add(kit)
    session.commit()

    response = client.post(CART_URL, json={"kit_id": str(kit.id)}, headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["detail"] == {
        "code": "KitUnavailable",
        "message": "Kit is not available",
        "kit_id": str(kit.id),
    }
