from secrets import token_hex
from sqlalchemy import (
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from app.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from app.src.enums import (
    AccountStatus,
    ApprovalStatus,
    AuctionStatus,
    BillingStatus,
    OrderStatus,
    PlatformType,
    UserRole,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONList = JSON().with_variant(JSONB(), "postgresql")


# ----------------------------------- Account DB Models ---------------------------------------#
class User(ORMbase):
    """
    Represents a person using the portal: an administrator, a disponent or a driver.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the user.
            Never changes once created.

        email (String(256)):
            Login identifier and contact address.
            Must be unique and not null.

        password (TEXT):
            Argon2 hash of the password.
            Null for accounts provisioned by an external identity provider.

        first_name (String(64)):
            Optional given name.

        last_name (String(64)):
            Optional family name.

        role (Integer):
            Mapped from the `UserRole` enum. Defaults to `UserRole.DRIVER`.

        status (Integer):
            Mapped from the `AccountStatus` enum. Defaults to `AccountStatus.PENDING`.
            Only active drivers may purchase auctions or accept orders.

        updated_on (DateTime):
            Timestamp automatically updated whenever the user is modified.

        created_on (DateTime):
            Timestamp of when the account was created.
    """

    __tablename__ = "user"

    id = Column(Integer, primary_key=True)
    email = Column(String(256), nullable=False, unique=True)
    password = Column(TEXT)
    first_name = Column(String(64))
    last_name = Column(String(64))
    role = Column(Integer, nullable=False, default=UserRole.DRIVER)
    status = Column(Integer, nullable=False, default=AccountStatus.PENDING)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class UserToken(ORMbase):
    """
    Represents an authentication token issued to a user.

    Columns:
        id (Integer):
            Primary key. Unique identifier for this token record.

        user_id (Integer):
            Foreign key referencing `user.id`.
            Cascades on delete, tokens die with their user.

        access_token (String):
            Securely generated 64-character hexadecimal bearer token.

        expires_in (Integer):
            Token lifetime in seconds.

        expires_at (DateTime):
            Date and time after which the token becomes invalid.

        platform_type (Integer):
            Mapped from the `PlatformType` enum. Defaults to `PlatformType.OTHER`.

        client_details (TEXT):
            Optional description of the client (user agent, app version and so on).
            Maximum 1024 characters long.

        updated_on (DateTime):
            Timestamp automatically updated whenever the token is modified.

        created_on (DateTime):
            Timestamp indicating when this token was created.
    """

    __tablename__ = "user_token"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Brokerage DB Models -------------------------------------#
class Auction(ORMbase):
    """
    Represents an instant-buy transport listing.

    An auction is sold at most once. The `active -> sold` transition is only
    ever written by a conditional update guarded by `status = ACTIVE`.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the auction.

        pickup_location, delivery_location (String(256)):
            Free-text route endpoints. Must not be null.

        vehicle_brand, vehicle_model (String(64)):
            Vehicle descriptor. Must not be null.

        vehicle_year (Integer):
            Optional model year.

        pickup_date (DateTime):
            Date of pickup. Must not be null.

        delivery_date (DateTime):
            Optional date of delivery.

        pickup_time_from, pickup_time_to, delivery_time_from, delivery_time_to (String(5)):
            Time windows in `HH:MM` format. Mandatory for auctions.

        instant_price (Numeric(10, 2)):
            The single price at which the listing is bought.

        distance (Integer):
            Optional route length in kilometres.

        notes (TEXT):
            Optional free-text notes.

        status (Integer):
            Mapped from the `AuctionStatus` enum. Defaults to `AuctionStatus.ACTIVE`.

        purchased_by_id (Integer):
            Foreign key referencing `user.id`. Null until sold.

        purchased_at (DateTime):
            Time of the purchase. Null until sold.

        created_by_id (Integer):
            Foreign key referencing `user.id`, the administrator who listed it.

        updated_on (DateTime):
            Timestamp automatically updated whenever the auction is modified.

        created_on (DateTime):
            Timestamp indicating when the auction was listed.
    """

    __tablename__ = "auction"

    id = Column(Integer, primary_key=True)
    pickup_location = Column(String(256), nullable=False)
    delivery_location = Column(String(256), nullable=False)
    vehicle_brand = Column(String(64), nullable=False)
    vehicle_model = Column(String(64), nullable=False)
    vehicle_year = Column(Integer)
    pickup_date = Column(DateTime(timezone=True), nullable=False)
    delivery_date = Column(DateTime(timezone=True))
    pickup_time_from = Column(String(5), nullable=False)
    pickup_time_to = Column(String(5), nullable=False)
    delivery_time_from = Column(String(5), nullable=False)
    delivery_time_to = Column(String(5), nullable=False)
    instant_price = Column(Numeric(10, 2), nullable=False)
    distance = Column(Integer)
    notes = Column(TEXT)
    status = Column(Integer, nullable=False, default=AuctionStatus.ACTIVE, index=True)
    purchased_by_id = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"))
    purchased_at = Column(DateTime(timezone=True))
    created_by_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Order(ORMbase):
    """
    Represents a transport job.

    Orders are posted directly by an administrator or a disponent, or spawned
    by a successful auction purchase. A spawned order has `from_auction` set,
    references its auction and is owned by the buyer from creation.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the order.

        pickup_location, delivery_location (String(256)):
            Free-text route endpoints. Must not be null.

        vehicle_brand, vehicle_model (String(64)):
            Vehicle descriptor. Must not be null.

        vehicle_year (Integer):
            Optional model year.

        pickup_date (DateTime):
            Date of pickup. Must not be null.

        delivery_date (DateTime):
            Optional date of delivery.

        pickup_time_from, pickup_time_to, delivery_time_from, delivery_time_to (String(5)):
            Optional time windows in `HH:MM` format.

        price (Numeric(10, 2)):
            Price of the job. Must not be null.

        distance (Integer):
            Optional route length in kilometres.

        notes (TEXT):
            Optional free-text notes.

        status (Integer):
            Mapped from the `OrderStatus` enum. Defaults to `OrderStatus.OPEN`.

        assigned_driver_id (Integer):
            Foreign key referencing `user.id`. The driver responsible for the job.
            Always set for orders spawned by a purchase.

        created_by_id (Integer):
            Foreign key referencing `user.id`, the owner of the order.
            For spawned orders this is the creator of the auction.

        from_auction (Boolean):
            Whether the order was spawned by an auction purchase.

        auction_id (Integer):
            Foreign key referencing `auction.id`. Unique, an auction spawns at most one order.
            Set to null when the auction is deleted.

        updated_on (DateTime):
            Timestamp automatically updated whenever the order is modified.

        created_on (DateTime):
            Timestamp indicating when the order was created.
    """

    __tablename__ = "transport_order"

    id = Column(Integer, primary_key=True)
    pickup_location = Column(String(256), nullable=False)
    delivery_location = Column(String(256), nullable=False)
    vehicle_brand = Column(String(64), nullable=False)
    vehicle_model = Column(String(64), nullable=False)
    vehicle_year = Column(Integer)
    pickup_date = Column(DateTime(timezone=True), nullable=False)
    delivery_date = Column(DateTime(timezone=True))
    pickup_time_from = Column(String(5))
    pickup_time_to = Column(String(5))
    delivery_time_from = Column(String(5))
    delivery_time_to = Column(String(5))
    price = Column(Numeric(10, 2), nullable=False)
    distance = Column(Integer)
    notes = Column(TEXT)
    status = Column(Integer, nullable=False, default=OrderStatus.OPEN, index=True)
    assigned_driver_id = Column(
        Integer, ForeignKey("user.id", ondelete="SET NULL"), index=True
    )
    created_by_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    from_auction = Column(Boolean, nullable=False, default=False)
    auction_id = Column(
        Integer, ForeignKey("auction.id", ondelete="SET NULL"), unique=True
    )
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Billing(ORMbase):
    """
    Represents a ledger line recording money owed to or by a user.

    Rows are written only as a side effect of a purchase, a cancellation or an
    administrator-initiated completion payment. The order and auction backlinks
    carry no foreign key, so a line survives the deletion of the entity that
    caused it.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the billing entry.

        user_id (Integer):
            Foreign key referencing `user.id`. Who owes or is owed the amount.

        order_id (Integer):
            Optional identifier of the order that caused the entry.

        auction_id (Integer):
            Optional identifier of the auction that caused the entry.

        amount (Numeric(10, 2)):
            Current amount of the entry.

        original_amount (Numeric(10, 2)):
            Amount the entry was created with. Set on the first administrator
            adjustment and never overwritten afterwards.

        type (Integer):
            Mapped from the `BillingType` enum.

        status (Integer):
            Mapped from the `BillingStatus` enum. Defaults to `BillingStatus.PENDING`.

        description (TEXT):
            Human readable reason for the entry.

        admin_notes (TEXT):
            Optional notes left by the deciding administrator.

        approved_by_id (Integer):
            Foreign key referencing `user.id`. The administrator who decided the entry.

        approved_at (DateTime):
            Time of the decision.

        created_by_id (Integer):
            Foreign key referencing `user.id`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the entry is modified.

        created_on (DateTime):
            Timestamp indicating when the entry was written.
    """

    __tablename__ = "billing"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    order_id = Column(Integer, index=True)
    auction_id = Column(Integer, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    original_amount = Column(Numeric(10, 2))
    type = Column(Integer, nullable=False)
    status = Column(Integer, nullable=False, default=BillingStatus.PENDING, index=True)
    description = Column(TEXT, nullable=False)
    admin_notes = Column(TEXT)
    approved_by_id = Column(Integer, ForeignKey("user.id"))
    approved_at = Column(DateTime(timezone=True))
    created_by_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class VehicleHandover(ORMbase):
    """
    Condition report written by the driver at vehicle pickup or delivery.
    Immutable after creation, one record per order and handover type.
    """

    __tablename__ = "vehicle_handover"
    __table_args__ = (UniqueConstraint("order_id", "handover_type"),)

    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer,
        ForeignKey("transport_order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    driver_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    handover_type = Column(Integer, nullable=False)
    km_reading = Column(Integer, nullable=False)
    fuel_level = Column(String(32))
    vehicle_condition = Column(TEXT, nullable=False)
    damage_notes = Column(TEXT)
    photos = Column(JSONList, nullable=False, default=list)
    signature = Column(TEXT)
    location = Column(String(256), nullable=False)
    handover_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OrderApproval(ORMbase):
    """
    Time-bounded proposal addressed to a driver: an assignment, an auction
    purchase confirmation or a price adjustment.

    Columns:
        id (Integer):
            Primary key.

        order_id (Integer):
            Foreign key referencing `transport_order.id`. Cascades on delete.

        driver_id (Integer):
            Foreign key referencing `user.id`. The driver who must respond.

        approval_type (Integer):
            Mapped from the `ApprovalType` enum.

        status (Integer):
            Mapped from the `ApprovalStatus` enum. Defaults to `ApprovalStatus.PENDING`.

        proposed_price (Numeric(10, 2)):
            New price, only for price adjustments.

        expires_at (DateTime):
            After this moment the proposal can only expire.

        responded_on (DateTime):
            Time of the accept, reject or expiry.

        created_by_id (Integer):
            Foreign key referencing `user.id`, the proposing administrator.

        created_on (DateTime):
            Timestamp indicating when the proposal was made.
    """

    __tablename__ = "order_approval"

    id = Column(Integer, primary_key=True)
    order_id = Column(
        Integer,
        ForeignKey("transport_order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    driver_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    approval_type = Column(Integer, nullable=False)
    status = Column(Integer, nullable=False, default=ApprovalStatus.PENDING, index=True)
    proposed_price = Column(Numeric(10, 2))
    expires_at = Column(DateTime(timezone=True), nullable=False)
    responded_on = Column(DateTime(timezone=True))
    created_by_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
