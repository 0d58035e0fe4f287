"""
HTTP tests for the payment endpoints
"""

import pytest
from decimal import Decimal

from restoflow.core.auth import IdentityType
from restoflow.core.config import get_settings
from restoflow.models import OrderStatus

PREFIX = "/api/v1/payments"


async def completed(order_factory, amount="300.00", **kwargs):
    return await order_factory(net_amount=Decimal(amount), status=OrderStatus.COMPLETED, **kwargs)


@pytest.fixture
def callback_secret(monkeypatch):
    monkeypatch.setattr(get_settings(), "PAYMENT_CALLBACK_SECRET", "s3cret")
    return "s3cret"


async def test_group_payment_and_callback(client, customer_headers, notifier, order_factory):
    await completed(order_factory, "300.00")
    await completed(order_factory, "200.00")

    created = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1}, headers=customer_headers)

    assert created.status_code == 201
    data = created.json()["data"]
    assert Decimal(data["total_amount"]) == Decimal("500.00")

    callback = await client.post(
        f"{PREFIX}/callback", json={"provider_ref": data["group_txn_id"], "status": "SUCCESS"}
    )

    assert callback.status_code == 200
    assert {o["payment_status"] for o in callback.json()["data"]["orders"]} == {"Paid"}
    assert len(notifier.events("paymentStatusUpdated")) == 2


async def test_group_payment_nothing_to_pay(client, customer_headers, catalog):
    response = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1}, headers=customer_headers)

    assert response.status_code == 422
    assert response.json()["error"] == "NoUnpaidOrders"


async def test_group_payment_replay_is_409(client, customer_headers, order_factory):
    await completed(order_factory)
    body = {"restaurant_id": 1, "idempotency_key": "checkout-1"}

    await client.post(f"{PREFIX}/group", json=body, headers=customer_headers)
    again = await client.post(f"{PREFIX}/group", json=body, headers=customer_headers)

    assert again.status_code == 409
    assert again.json()["error"] == "DuplicateGroupPayment"


async def test_staff_group_payment_needs_customer(client, staff_headers, order_factory):
    await completed(order_factory)

    missing = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1}, headers=staff_headers)
    given = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1, "customer_id": 7}, headers=staff_headers)

    assert missing.status_code == 422
    assert given.status_code == 201


async def test_staff_group_payment_other_restaurant(client, headers_for, order_factory):
    await completed(order_factory)
    headers = headers_for(IdentityType.USER, 5, "RestaurantStaff", 2)

    response = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1, "customer_id": 7}, headers=headers)

    assert response.status_code == 403


async def test_callback_unknown_reference(client, catalog):
    response = await client.post(f"{PREFIX}/callback", json={"provider_ref": "GRPNONE", "status": "SUCCESS"})

    assert response.status_code == 404


async def test_callback_bad_status(client, catalog):
    response = await client.post(f"{PREFIX}/callback", json={"provider_ref": "GRPNONE", "status": "MAYBE"})

    assert response.status_code == 422


async def test_callback_secret_enforced(client, callback_secret, customer_headers, order_factory):
    await completed(order_factory)
    created = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1}, headers=customer_headers)
    body = {"provider_ref": created.json()["data"]["group_txn_id"], "status": "SUCCESS"}

    missing = await client.post(f"{PREFIX}/callback", json=body)
    wrong = await client.post(f"{PREFIX}/callback", json=body, headers={"X-Callback-Secret": "nope"})
    right = await client.post(f"{PREFIX}/callback", json=body, headers={"X-Callback-Secret": callback_secret})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert right.status_code == 200


async def test_split_bill_flow(client, customer_headers, order_factory):
    order = await order_factory(customer_id=7, net_amount=Decimal("1000.00"))

    created = await client.post(
        f"{PREFIX}/split-bills/create",
        json={"order_id": order.id, "splits": [{"label": "A", "amount": "500.00"}, {"label": "B", "amount": "500.00"}]},
        headers=customer_headers,
    )
    assert created.status_code == 201
    split_a, split_b = created.json()["data"]["split_bills"]

    paid_refs = []
    for split in (split_a, split_b):
        pay = await client.post(f"{PREFIX}/split-bills/{split['id']}/pay", json={}, headers=customer_headers)
        assert pay.status_code == 201
        ref = pay.json()["data"]["provider_ref"]
        paid_refs.append(ref)
        confirmed = await client.post(
            f"{PREFIX}/split-bills/callback", json={"provider_ref": ref, "split_bill_id": split["id"]}
        )
        assert confirmed.status_code == 200

    [final] = confirmed.json()["data"]["orders"]
    assert final["payment_status"] == "Paid"

    again = await client.post(f"{PREFIX}/split-bills/{split_a['id']}/pay", json={}, headers=customer_headers)
    assert again.status_code == 409


async def test_split_mismatch_is_422(client, customer_headers, order_factory):
    order = await order_factory(customer_id=7, net_amount=Decimal("1000.00"))

    response = await client.post(
        f"{PREFIX}/split-bills/create",
        json={"order_id": order.id, "splits": [{"amount": "100.00"}]},
        headers=customer_headers,
    )

    assert response.status_code == 422
    assert response.json()["error"] == "SplitMismatch"


async def test_split_other_customer_order(client, customer_headers, order_factory):
    order = await order_factory(customer_id=8, net_amount=Decimal("100.00"))

    response = await client.post(
        f"{PREFIX}/split-bills/create",
        json={"order_id": order.id, "splits": [{"amount": "100.00"}]},
        headers=customer_headers,
    )

    assert response.status_code == 403


async def test_checkout_without_gateway_is_503(client, customer_headers, order_factory):
    await completed(order_factory)
    created = await client.post(f"{PREFIX}/group", json={"restaurant_id": 1}, headers=customer_headers)

    response = await client.post(
        f"{PREFIX}/checkout",
        json={"provider_ref": created.json()["data"]["group_txn_id"]},
        headers=customer_headers,
    )

    assert response.status_code == 503
    assert response.json()["error"] == "GatewayError"
