import argparse
from http import HTTPStatus
from requests import patch, post
from datetime import datetime, timedelta, timezone

from app.src import argon2
from app.src.enums import AccountStatus, UserRole
from app.src.urls import (
    URL_ACCOUNT_TOKEN,
    URL_AUCTION,
    URL_ORDER,
    URL_ORDER_ASSIGN,
)
from app.src.db import User, sessionMaker, engine, ORMbase


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    ORMbase.metadata.drop_all(engine)
    print("* All tables deleted")


def createTables():
    ORMbase.metadata.create_all(engine)
    print("* All tables created")


def initDB():
    session = sessionMaker()
    password = argon2.makePassword("password")
    admin = User(
        email="admin@transport-portal.de",
        password=password,
        first_name="Portal",
        last_name="Admin",
        role=UserRole.ADMIN,
        status=AccountStatus.ACTIVE,
    )
    session.add(admin)
    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def PATCH(URL: str, header: dict = {}, status_code: int = HTTPStatus.OK, **kwargs):
    response = patch(URL, headers=header, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def login(BASE_URL: str, email: str) -> dict:
    credentials = {"email": email, "password": "password"}
    response = POST((BASE_URL + URL_ACCOUNT_TOKEN), data=credentials)
    print(f"* Created token for {email}")
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080"

    # Demo accounts, user administration has no API
    session = sessionMaker()
    password = argon2.makePassword("password")
    disponent = User(
        email="disponent@transport-portal.de",
        password=password,
        first_name="Demo",
        last_name="Disponent",
        role=UserRole.DISPONENT,
        status=AccountStatus.ACTIVE,
    )
    drivers = [
        User(
            email=f"driver{index}@transport-portal.de",
            password=password,
            first_name="Demo",
            last_name=f"Driver {index}",
            role=UserRole.DRIVER,
            status=AccountStatus.ACTIVE,
        )
        for index in range(1, 3)
    ]
    session.add_all([disponent, *drivers])
    session.commit()
    driverIds = [driver.id for driver in drivers]
    session.close()
    print("* Created disponent and driver accounts")

    adminToken = login(BASE_URL, "admin@transport-portal.de")
    disponentToken = login(BASE_URL, "disponent@transport-portal.de")

    pickupDate = datetime.now(timezone.utc) + timedelta(days=2)
    deliveryDate = pickupDate + timedelta(days=1)

    # Create Auctions
    auctions = [
        ("Berlin", "Hamburg", "BMW", "320d", "450.00", 290),
        ("Munich", "Cologne", "Audi", "A4 Avant", "620.00", 575),
        ("Frankfurt", "Dresden", "Volkswagen", "Golf", "380.00", 460),
    ]
    for pickup, delivery, brand, model, price, distance in auctions:
        auctionData = {
            "pickup_location": pickup,
            "delivery_location": delivery,
            "vehicle_brand": brand,
            "vehicle_model": model,
            "pickup_date": pickupDate.isoformat(),
            "delivery_date": deliveryDate.isoformat(),
            "pickup_time_from": "08:00",
            "pickup_time_to": "12:00",
            "delivery_time_from": "13:00",
            "delivery_time_to": "18:00",
            "instant_price": price,
            "distance": distance,
        }
        POST((BASE_URL + URL_AUCTION), header=adminToken, json=auctionData)
    print("* Created auctions")

    # Create Orders
    orderData = {
        "pickup_location": "Stuttgart",
        "delivery_location": "Leipzig",
        "vehicle_brand": "Mercedes-Benz",
        "vehicle_model": "C 200",
        "vehicle_year": 2021,
        "pickup_date": pickupDate.isoformat(),
        "price": "510.00",
        "distance": 480,
    }
    order = POST((BASE_URL + URL_ORDER), header=adminToken, json=orderData)
    POST((BASE_URL + URL_ORDER), header=disponentToken, json=orderData)
    print("* Created orders")

    assignData = {"id": order.json()["id"], "driver_id": driverIds[0]}
    PATCH((BASE_URL + URL_ORDER_ASSIGN), header=adminToken, json=assignData)
    print("* Assigned order to driver1")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
