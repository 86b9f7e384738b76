from unittest.mock import patch

import pytest

from storefront_service import models, orders, schema
from storefront_service.config import get_settings
from storefront_service.errors import OutOfStock
from storefront_service.models import PaymentMethod

from .conftest import make_user


def _payload(lines, address=None, method="pay-on-delivery") -> dict:
    return {
        "cart_items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        "address": address,
        "payment_method": method,
    }


def _saved(address) -> dict:
    return {"kind": "saved", "address_id": address.id}


INLINE_ADDRESS = {
    "kind": "inline",
    "full_name": "Ada Shopper",
    "line1": "9 Harbour Street",
    "city": "Oakland",
    "state": "CA",
    "postal_code": "94607",
    "country": "USA",
}


def test_checkout_places_order_and_clears_cart(auth_client, db, catalog, user, address) -> None:
    db.add(models.CartItem(user_id=user.id, product_id=catalog.speaker.id, quantity=1))
    db.commit()

    response = auth_client.post("/checkout", json=_payload([(catalog.speaker.id, 1)], _saved(address)))

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["order_number"].startswith("SF-")
    assert order["status"] == "PENDING"
    assert order["payment_status"] == "PENDING"
    assert order["shipping_status"] == "NOT_SHIPPED"
    assert order["subtotal_cents"] == 14999
    assert order["tax_cents"] == 1275
    assert order["shipping_cents"] == 1299
    assert order["total_cents"] == 17573
    assert order["address_snapshot"]["city"] == "San Francisco"
    assert order["items"][0]["product_name"] == "Apex Echo Smart Speaker"
    assert order["items"][0]["image_url"] == "https://img.test/speaker.jpg"

    assert db.get(models.Product, catalog.speaker.id).inventory == 4
    assert db.query(models.CartItem).filter(models.CartItem.user_id == user.id).count() == 0


def test_checkout_rejects_oversell_and_leaves_tables_untouched(auth_client, db, catalog, user) -> None:
    db.add(models.CartItem(user_id=user.id, product_id=catalog.headphones.id, quantity=1))
    db.commit()

    response = auth_client.post(
        "/checkout",
        json=_payload([(catalog.speaker.id, 1), (catalog.headphones.id, 2)], INLINE_ADDRESS),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient inventory for Apex Studio Headphones"
    assert db.query(models.Order).count() == 0
    assert db.query(models.OrderItem).count() == 0
    assert db.query(models.Address).count() == 0
    assert db.get(models.Product, catalog.speaker.id).inventory == 5
    assert db.get(models.Product, catalog.headphones.id).inventory == 1
    assert db.query(models.CartItem).count() == 1


def test_checkout_with_unknown_product(auth_client, catalog, address) -> None:
    response = auth_client.post("/checkout", json=_payload([(9999, 1)], _saved(address)))
    assert response.status_code == 404


def test_checkout_requires_an_address(auth_client, catalog) -> None:
    response = auth_client.post("/checkout", json=_payload([(catalog.speaker.id, 1)]))
    assert response.status_code == 400
    assert response.json()["detail"] == "Address is required"


def test_checkout_rejects_another_users_address(auth_client, db, catalog) -> None:
    stranger = make_user(db, email="stranger@example.com", name="Stranger")
    foreign = models.Address(
        user_id=stranger.id,
        full_name="Stranger",
        line1="1 Elsewhere Road",
        city="Portland",
        state="OR",
        postal_code="97201",
        country="USA",
    )
    db.add(foreign)
    db.commit()

    response = auth_client.post("/checkout", json=_payload([(catalog.speaker.id, 1)], _saved(foreign)))

    assert response.status_code == 404
    assert response.json()["detail"] == "Address not found"
    assert db.query(models.Order).count() == 0


def test_checkout_with_empty_cart(auth_client, address) -> None:
    response = auth_client.post("/checkout", json=_payload([], _saved(address)))
    assert response.status_code == 400
    assert response.json()["detail"] == "Cart is empty"


def test_checkout_requires_session(client, catalog) -> None:
    response = client.post("/checkout", json=_payload([(catalog.speaker.id, 1)], INLINE_ADDRESS))
    assert response.status_code == 401


def test_checkout_rejects_unknown_payment_method(auth_client, catalog, address) -> None:
    response = auth_client.post("/checkout", json=_payload([(catalog.speaker.id, 1)], _saved(address), "barter"))
    assert response.status_code == 400


def test_inline_address_is_saved_for_the_user(auth_client, db, catalog, user) -> None:
    response = auth_client.post("/checkout", json=_payload([(catalog.classics.id, 1)], INLINE_ADDRESS))

    assert response.status_code == 201
    saved = db.query(models.Address).filter(models.Address.user_id == user.id).one()
    assert saved.city == "Oakland"
    assert response.json()["order"]["address_snapshot"]["full_name"] == "Ada Shopper"


def test_order_snapshot_survives_address_edit_and_delete(auth_client, catalog, address) -> None:
    placed = auth_client.post("/checkout", json=_payload([(catalog.speaker.id, 1)], _saved(address)))
    order_number = placed.json()["order"]["order_number"]

    assert auth_client.patch(f"/addresses/{address.id}", json={"city": "Sacramento"}).status_code == 200
    assert auth_client.delete(f"/addresses/{address.id}").status_code == 200

    response = auth_client.get(f"/orders/{order_number}")
    assert response.status_code == 200
    snapshot = response.json()["address_snapshot"]
    assert snapshot["city"] == "San Francisco"
    assert snapshot["line1"] == "123 Innovation Way"


def test_card_gateway_without_credentials_is_simulated(auth_client, catalog, address) -> None:
    response = auth_client.post(
        "/checkout",
        json=_payload([(catalog.speaker.id, 1)], _saved(address), "card-gateway"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["order"]["payment_status"] == "PENDING"
    assert body["payment"]["provider"] == "card-gateway"
    assert body["payment"]["simulated"] is True
    assert body["payment"]["order_number"] == body["order"]["order_number"]


def test_wallet_orders_are_authorized_but_unverified(auth_client, catalog, address) -> None:
    response = auth_client.post(
        "/checkout",
        json=_payload([(catalog.speaker.id, 1)], _saved(address), "wallet-redirect"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["order"]["payment_status"] == "AUTHORIZED"
    assert body["payment"]["verified"] is False
    assert body["payment"]["client_id"] == "wallet-test-client"


def test_duplicate_lines_are_merged(db, catalog, user, address) -> None:
    request = schema.CheckoutRequest(
        cart_items=[
            schema.CheckoutLine(product_id=catalog.speaker.id, quantity=1),
            schema.CheckoutLine(product_id=catalog.speaker.id, quantity=2),
        ],
        address=schema.SavedAddressSelector(kind="saved", address_id=address.id),
        payment_method=PaymentMethod.PAY_ON_DELIVERY,
    )

    order = orders.place_order(db, user.id, request, get_settings())

    assert len(order.items) == 1
    assert order.items[0].quantity == 3
    assert order.subtotal_cents == 14999 * 3
    assert db.get(models.Product, catalog.speaker.id).inventory == 2


def test_stale_availability_read_is_caught_by_decrement(db, catalog, user, address) -> None:
    other = make_user(db, email="other@example.com", name="Other Shopper")

    def _request(user_id: int) -> schema.CheckoutRequest:
        return schema.CheckoutRequest(
            cart_items=[schema.CheckoutLine(product_id=catalog.headphones.id, quantity=1)],
            address=schema.InlineAddressSelector(
                kind="inline",
                full_name="Shopper",
                line1="500 Market Street",
                city="San Francisco",
                state="CA",
                postal_code="94105",
                country="USA",
            ),
            payment_method=PaymentMethod.PAY_ON_DELIVERY,
        )

    # Both checkouts get past the availability read, as two interleaved requests would.
    with patch("storefront_service.inventory.ensure_available"):
        orders.place_order(db, user.id, _request(user.id), get_settings())
        with pytest.raises(OutOfStock):
            orders.place_order(db, other.id, _request(other.id), get_settings())

    assert db.get(models.Product, catalog.headphones.id).inventory == 0
    assert db.query(models.Order).count() == 1
    assert db.query(models.Address).filter(models.Address.user_id == other.id).count() == 0


def test_quote_matches_checkout_totals(client, catalog) -> None:
    response = client.post(
        "/checkout/quote",
        json={"cart_items": [{"product_id": catalog.speaker.id, "quantity": 1}]},
    )
    assert response.status_code == 200
    assert response.json() == {
        "subtotal_cents": 14999,
        "tax_cents": 1275,
        "shipping_cents": 1299,
        "total_cents": 17573,
    }


def test_quote_with_unknown_product(client, catalog) -> None:
    response = client.post("/checkout/quote", json={"cart_items": [{"product_id": 4242, "quantity": 1}]})
    assert response.status_code == 404


def test_quote_with_empty_cart(client) -> None:
    response = client.post("/checkout/quote", json={"cart_items": []})
    assert response.status_code == 400
    assert response.json()["detail"] == "Cart is empty"
