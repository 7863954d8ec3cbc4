from decimal import Decimal

from app.src.constants import API_VERSION
from app.src.db import Auction, Billing, UserToken
from app.src.enums import (
    AuctionStatus,
    BillingType,
    OrderStatus,
    PlatformType,
    UserRole,
)
from app.src.urls import (
    URL_ACCOUNT,
    URL_ACCOUNT_TOKEN,
    URL_AUCTION,
    URL_AUCTION_PURCHASE,
    URL_BILLING,
    URL_BILLING_COMPLETION,
    URL_HEALTH,
    URL_ORDER,
    URL_ORDER_ASSIGN,
    URL_ORDER_HANDOVER,
    URL_ORDER_STATUS,
)

PASSWORD = "password"

AUCTION = {
    "pickup_location": "Berlin",
    "delivery_location": "Hamburg",
    "vehicle_brand": "BMW",
    "vehicle_model": "320d",
    "pickup_date": "2030-05-17T08:00:00Z",
    "pickup_time_from": "08:00",
    "pickup_time_to": "12:00",
    "delivery_time_from": "13:00",
    "delivery_time_to": "18:00",
    "instant_price": "100.00",
    "distance": 290,
}


def test_health(client):
    response = client.get(URL_HEALTH)

    assert response.status_code == 200
    assert response.json() == {"status": "OK", "version": API_VERSION}


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------
def test_login_issues_token(client, session, driver, auditEvents):
    response = client.post(
        URL_ACCOUNT_TOKEN,
        data={
            "email": driver.email,
            "password": PASSWORD,
            "platform_type": int(PlatformType.WEB),
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == driver.id
    assert body["token_type"] == "bearer"
    assert len(body["access_token"]) == 64
    assert session.query(UserToken).count() == 1
    [event] = auditEvents
    assert event["_path"] == URL_ACCOUNT_TOKEN
    assert event["_user_id"] == driver.id
    assert "access_token" not in event


def test_login_rejects_bad_password(client, driver):
    response = client.post(
        URL_ACCOUNT_TOKEN, data={"email": driver.email, "password": "wrong"}
    )

    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidCredentials"


def test_login_rejects_unknown_email(client):
    response = client.post(
        URL_ACCOUNT_TOKEN,
        data={"email": "nobody@transport-portal.de", "password": PASSWORD},
    )

    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidCredentials"


def test_login_needs_active_account(client, pendingDriver):
    response = client.post(
        URL_ACCOUNT_TOKEN, data={"email": pendingDriver.email, "password": PASSWORD}
    )

    assert response.status_code == 403
    assert response.headers["X-Error"] == "InactiveAccount"


def test_login_keeps_a_bounded_number_of_tokens(client, session, driver):
    for _ in range(7):
        response = client.post(
            URL_ACCOUNT_TOKEN, data={"email": driver.email, "password": PASSWORD}
        )
        assert response.status_code == 201

    session.expire_all()
    assert session.query(UserToken).filter(UserToken.user_id == driver.id).count() == 5


def test_account_and_logout(client, driver, authHeader):
    header = authHeader(driver)

    response = client.get(URL_ACCOUNT, headers=header)
    assert response.status_code == 200
    assert response.json()["role"] == UserRole.DRIVER
    assert "password" not in response.json()

    response = client.get(URL_ACCOUNT_TOKEN, headers=header)
    assert response.status_code == 200
    assert "access_token" not in response.json()[0]

    assert client.delete(URL_ACCOUNT_TOKEN, headers=header).status_code == 204
    response = client.get(URL_ACCOUNT, headers=header)
    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidToken"


def test_unknown_bearer_token(client):
    response = client.get(URL_ACCOUNT, headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidToken"


# ---------------------------------------------------------------------------
# Auctions and purchase
# ---------------------------------------------------------------------------
def test_purchase_over_http(client, session, admin, driver, driver2, authHeader):
    response = client.post(URL_AUCTION, headers=authHeader(admin), json=AUCTION)
    assert response.status_code == 201
    auction = response.json()
    assert auction["instant_price"] == "100.00"
    assert auction["status"] == AuctionStatus.ACTIVE

    response = client.post(
        URL_AUCTION_PURCHASE, headers=authHeader(driver), json={"id": auction["id"]}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["auction"]["status"] == AuctionStatus.SOLD
    assert body["auction"]["purchased_by_id"] == driver.id
    assert body["order"]["price"] == "100.00"
    assert body["order"]["status"] == OrderStatus.IN_PROGRESS
    assert body["order"]["from_auction"] is True

    response = client.post(
        URL_AUCTION_PURCHASE, headers=authHeader(driver2), json={"id": auction["id"]}
    )
    assert response.status_code == 404
    assert response.headers["X-Error"] == "NotAvailable"

    [payment] = session.query(Billing).all()
    assert payment.user_id == driver.id


def test_buyer_cancels_and_sees_the_fee(client, driver, auctionOrder, authHeader):
    header = authHeader(driver)

    response = client.patch(
        URL_ORDER_STATUS,
        headers=header,
        json={"id": auctionOrder.id, "status": OrderStatus.CANCELLED},
    )
    assert response.status_code == 200
    assert response.json()["status"] == OrderStatus.CANCELLED

    response = client.get(URL_BILLING, headers=header)
    assert response.status_code == 200
    amounts = {line["type"]: line["amount"] for line in response.json()}
    assert amounts == {
        BillingType.ORDER_PAYMENT: "100.00",
        BillingType.CANCELLATION_FEE: "10.00",
    }


def test_auction_listing_is_scoped(
    client, session, admin, disponent, driver, authHeader, makeAuction
):
    makeAuction()
    cancelled = makeAuction()
    session.query(Auction).filter(Auction.id == cancelled.id).update(
        {Auction.status: AuctionStatus.CANCELLED}
    )
    session.commit()

    assert len(client.get(URL_AUCTION, headers=authHeader(admin)).json()) == 2
    assert len(client.get(URL_AUCTION, headers=authHeader(disponent)).json()) == 1
    assert len(client.get(URL_AUCTION, headers=authHeader(driver)).json()) == 1


def test_malformed_time_window_is_rejected(client, admin, authHeader, session):
    payload = dict(AUCTION, pickup_time_from="25:00")

    response = client.post(URL_AUCTION, headers=authHeader(admin), json=payload)

    assert response.status_code == 400
    assert response.headers["X-Error"] == "PydanticError"
    assert session.query(Auction).count() == 0


def test_non_positive_price_is_rejected(client, admin, authHeader):
    payload = dict(AUCTION, instant_price="0.00")

    response = client.post(URL_AUCTION, headers=authHeader(admin), json=payload)

    assert response.status_code == 400
    assert response.headers["X-Error"] == "PydanticError"


def test_disponent_cannot_list_auctions_for_sale(client, disponent, authHeader):
    response = client.post(URL_AUCTION, headers=authHeader(disponent), json=AUCTION)

    assert response.status_code == 403
    assert response.headers["X-Error"] == "NoPermission"


# ---------------------------------------------------------------------------
# Orders, handovers and billing
# ---------------------------------------------------------------------------
def test_manual_order_round_trip(
    client, session, admin, disponent, driver, authHeader, auditEvents
):
    orderPayload = {
        "pickup_location": "Stuttgart",
        "delivery_location": "Leipzig",
        "vehicle_brand": "Mercedes-Benz",
        "vehicle_model": "C 200",
        "pickup_date": "2030-05-17T08:00:00Z",
        "price": "510.00",
    }
    response = client.post(URL_ORDER, headers=authHeader(disponent), json=orderPayload)
    assert response.status_code == 201
    orderId = response.json()["id"]

    adminHeader = authHeader(admin)
    response = client.patch(
        URL_ORDER_ASSIGN,
        headers=adminHeader,
        json={"id": orderId, "driver_id": driver.id},
    )
    assert response.status_code == 200
    assert response.json()["status"] == OrderStatus.ASSIGNED

    driverHeader = authHeader(driver)
    handover = {
        "order_id": orderId,
        "km_reading": 1200,
        "vehicle_condition": "As new",
    }
    response = client.post(
        URL_ORDER_HANDOVER,
        headers=driverHeader,
        json=dict(handover, handover_type=1),
    )
    assert response.status_code == 201
    response = client.post(
        URL_ORDER_HANDOVER,
        headers=driverHeader,
        json=dict(handover, handover_type=2, km_reading=1680),
    )
    assert response.status_code == 201

    response = client.get(URL_ORDER, headers=driverHeader, params={"id": orderId})
    assert response.json()[0]["status"] == OrderStatus.COMPLETED

    response = client.get(URL_BILLING_COMPLETION, headers=adminHeader)
    assert [order["id"] for order in response.json()] == [orderId]

    response = client.post(
        URL_BILLING_COMPLETION,
        headers=adminHeader,
        json={"order_id": orderId, "driver_id": driver.id, "amount": "510.00"},
    )
    assert response.status_code == 201
    assert response.json()["amount"] == "510.00"

    response = client.post(
        URL_BILLING_COMPLETION,
        headers=adminHeader,
        json={"order_id": orderId, "driver_id": driver.id, "amount": "510.00"},
    )
    assert response.status_code == 400
    assert response.headers["X-Error"] == "DuplicateBilling"

    paths = [event["_path"] for event in auditEvents]
    assert paths.count(URL_ORDER_HANDOVER) == 2
    assert URL_BILLING_COMPLETION in paths


def test_drivers_cannot_create_orders_over_http(client, driver, authHeader):
    response = client.post(
        URL_ORDER,
        headers=authHeader(driver),
        json={
            "pickup_location": "Stuttgart",
            "delivery_location": "Leipzig",
            "vehicle_brand": "Opel",
            "vehicle_model": "Corsa",
            "pickup_date": "2030-05-17T08:00:00Z",
            "price": "90.00",
        },
    )

    assert response.status_code == 403
    assert response.headers["X-Error"] == "NoPermission"


def test_missing_order_is_reported(client, admin, driver, authHeader):
    response = client.patch(
        URL_ORDER_ASSIGN,
        headers=authHeader(admin),
        json={"id": 404, "driver_id": driver.id},
    )

    assert response.status_code == 404
    assert response.headers["X-Error"] == "InvalidIdentifier"


def test_disponents_have_no_billing_access(client, disponent, authHeader):
    response = client.get(URL_BILLING, headers=authHeader(disponent))

    assert response.status_code == 403
    assert response.headers["X-Error"] == "NoPermission"


def test_money_is_exact_in_the_store(client, session, admin, authHeader):
    payload = dict(AUCTION, instant_price="123.45")

    response = client.post(URL_AUCTION, headers=authHeader(admin), json=payload)

    assert response.status_code == 201
    auction = session.get(Auction, response.json()["id"])
    assert auction.instant_price == Decimal("123.45")
