"""
Auction operations, including the instant purchase.

An auction is sold at most once. The only statement that writes
`status = SOLD` is the conditional update in `purchaseAuction`, whose WHERE
clause re-checks `status = ACTIVE` at write time. Of any number of concurrent
buyers exactly one sees a row affected; every other buyer gets `NotAvailable`
and nothing is written for them.
"""

from datetime import datetime, timezone
from sqlalchemy import update
from sqlalchemy.orm.session import Session

from app.src.db import Auction, Order, User
from app.src.enums import AuctionStatus, OrderStatus
from app.src.policy import Action, authorize
from app.src.schemas import AuctionDetails
from app.src.transitions import AUCTION_STATUS_TRANSITION
from app.src.core import billing as ledger
from app.src import exceptions, validators

# Fields an order spawned by a purchase copies from its auction
COPIED_FIELDS = [
    Auction.pickup_location.key,
    Auction.delivery_location.key,
    Auction.vehicle_brand.key,
    Auction.vehicle_model.key,
    Auction.vehicle_year.key,
    Auction.pickup_date.key,
    Auction.delivery_date.key,
    Auction.pickup_time_from.key,
    Auction.pickup_time_to.key,
    Auction.delivery_time_from.key,
    Auction.delivery_time_to.key,
    Auction.distance.key,
    Auction.notes.key,
]


def createAuction(session: Session, actor: User, details: AuctionDetails) -> Auction:
    authorize(actor, Action.CREATE_AUCTION)
    validators.activeAccount(actor)
    try:
        auction = Auction(
            **details.model_dump(),
            status=AuctionStatus.ACTIVE,
            created_by_id=actor.id,
        )
        session.add(auction)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(auction)
    return auction


def purchaseAuction(
    session: Session, actor: User, auctionId: int
) -> tuple[Auction, Order]:
    """
    Buy an active auction at its instant price.

    In one transaction the auction is marked sold to the buyer, an order owned
    by the buyer is spawned from it and the buyer is billed the instant price.
    The spawned order starts `in_progress`; it never goes through accept or
    reject. Any failure rolls everything back and leaves the auction active.

    Args:
        session (Session): Session the whole purchase runs in.
        actor (User): The buying driver.
        auctionId (int): Auction to buy.

    Returns:
        tuple[Auction, Order]: The sold auction and the spawned order.

    Raises:
        exceptions.NoPermission: If the actor is not a driver.
        exceptions.InactiveAccount: If the driver is not active.
        exceptions.NotAvailable: If the auction is missing, not active, or was
            sold to someone else while this purchase was running.
    """
    authorize(actor, Action.PURCHASE_AUCTION)
    validators.activeAccount(actor)
    try:
        auction = session.query(Auction).filter(Auction.id == auctionId).first()
        if auction is None or auction.status != AuctionStatus.ACTIVE:
            raise exceptions.NotAvailable()

        result = session.execute(
            update(Auction)
            .where(Auction.id == auctionId, Auction.status == AuctionStatus.ACTIVE)
            .values(
                status=AuctionStatus.SOLD,
                purchased_by_id=actor.id,
                purchased_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise exceptions.NotAvailable()

        order = Order(
            **{field: getattr(auction, field) for field in COPIED_FIELDS},
            price=auction.instant_price,
            status=OrderStatus.IN_PROGRESS,
            assigned_driver_id=actor.id,
            created_by_id=auction.created_by_id,
            from_auction=True,
            auction_id=auction.id,
        )
        session.add(order)
        session.flush()
        ledger.recordOrderPayment(session, auction, order, actor)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(auction)
    session.refresh(order)
    return auction, order


def updateAuctionStatus(
    session: Session, actor: User, auctionId: int, status: AuctionStatus
) -> Auction:
    """
    Cancel or re-list an auction.

    The write is guarded by the status that was read, so a purchase landing in
    between makes this call fail instead of overwriting the sale.

    Raises:
        exceptions.InvalidIdentifier: If the auction does not exist.
        exceptions.InvalidStateTransition: If the transition is not allowed,
            the target is `SOLD`, or the auction changed concurrently.
    """
    authorize(actor, Action.UPDATE_AUCTION)
    validators.activeAccount(actor)
    if status == AuctionStatus.SOLD:
        raise exceptions.InvalidStateTransition(Auction.status)
    try:
        auction = session.query(Auction).filter(Auction.id == auctionId).first()
        if auction is None:
            raise exceptions.InvalidIdentifier()
        validators.stateTransition(
            AUCTION_STATUS_TRANSITION, auction.status, status, Auction.status
        )
        result = session.execute(
            update(Auction)
            .where(Auction.id == auctionId, Auction.status == auction.status)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise exceptions.InvalidStateTransition(Auction.status)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(auction)
    return auction


def deleteAuction(session: Session, actor: User, auctionId: int) -> bool:
    """Hard delete an auction. A spawned order keeps running without its backlink."""
    authorize(actor, Action.DELETE_AUCTION)
    validators.activeAccount(actor)
    try:
        deleted = (
            session.query(Auction)
            .filter(Auction.id == auctionId)
            .delete(synchronize_session=False)
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    return deleted == 1
