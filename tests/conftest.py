import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.src import argon2, getters, openobserve
from app.src.core import auction as auctionCore
from app.src.core import order as orderCore
from app.src.db import ORMbase, User, UserToken
from app.src.enums import AccountStatus, UserRole
from app.src.schemas import AuctionDetails, OrderDetails

PASSWORD = "password"
PASSWORD_HASH = argon2.makePassword(PASSWORD)
PICKUP_DATE = datetime(2030, 5, 17, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'portal.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def enableForeignKeys(dbapiConnection, connectionRecord):
        dbapiConnection.execute("PRAGMA foreign_keys=ON")

    ORMbase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def Session(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(Session):
    with Session() as session:
        yield session


@pytest.fixture
def otherSession(Session):
    """A second, independent connection to the same store."""
    with Session() as session:
        yield session


@pytest.fixture(autouse=True)
def auditEvents(monkeypatch):
    events = []
    monkeypatch.setattr(openobserve, "logEvent", events.append)
    return events


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
@pytest.fixture
def makeUser(session):
    counter = itertools.count(1)

    def make(role: UserRole, status: AccountStatus = AccountStatus.ACTIVE) -> User:
        user = User(
            email=f"{role.name.lower()}{next(counter)}@transport-portal.de",
            password=PASSWORD_HASH,
            role=role,
            status=status,
        )
        session.add(user)
        session.commit()
        return user

    return make


@pytest.fixture
def admin(makeUser):
    return makeUser(UserRole.ADMIN)


@pytest.fixture
def disponent(makeUser):
    return makeUser(UserRole.DISPONENT)


@pytest.fixture
def driver(makeUser):
    return makeUser(UserRole.DRIVER)


@pytest.fixture
def driver2(makeUser):
    return makeUser(UserRole.DRIVER)


@pytest.fixture
def pendingDriver(makeUser):
    return makeUser(UserRole.DRIVER, AccountStatus.PENDING)


# ---------------------------------------------------------------------------
# Listings and orders
# ---------------------------------------------------------------------------
def auctionDetails(**changes) -> AuctionDetails:
    fields = {
        "pickup_location": "Berlin",
        "delivery_location": "Hamburg",
        "vehicle_brand": "BMW",
        "vehicle_model": "320d",
        "vehicle_year": 2019,
        "pickup_date": PICKUP_DATE,
        "pickup_time_from": "08:00",
        "pickup_time_to": "12:00",
        "delivery_time_from": "13:00",
        "delivery_time_to": "18:00",
        "instant_price": Decimal("100.00"),
        "distance": 290,
    }
    fields.update(changes)
    return AuctionDetails(**fields)


def orderDetails(**changes) -> OrderDetails:
    fields = {
        "pickup_location": "Munich",
        "delivery_location": "Cologne",
        "vehicle_brand": "Audi",
        "vehicle_model": "A4",
        "pickup_date": PICKUP_DATE,
        "price": Decimal("250.00"),
    }
    fields.update(changes)
    return OrderDetails(**fields)


@pytest.fixture
def makeAuction(session, admin):
    def make(**changes):
        return auctionCore.createAuction(session, admin, auctionDetails(**changes))

    return make


@pytest.fixture
def makeOrder(session, admin):
    def make(actor=None, **changes):
        return orderCore.createOrder(session, actor or admin, orderDetails(**changes))

    return make


@pytest.fixture
def assignedOrder(session, admin, driver, makeOrder):
    order = makeOrder()
    return orderCore.assignOrderToDriver(session, admin, order.id, driver.id)


@pytest.fixture
def auctionOrder(session, driver, makeAuction):
    auction = makeAuction()
    auction, order = auctionCore.purchaseAuction(session, driver, auction.id)
    return order


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
@pytest.fixture
def client(Session):
    def testSession():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[getters.dbSession] = testSession
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def authHeader(session):
    def make(user: User) -> dict:
        token = UserToken(
            user_id=user.id,
            expires_in=3600,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        session.add(token)
        session.commit()
        return {"Authorization": f"Bearer {token.access_token}"}

    return make
