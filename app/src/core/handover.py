from typing import List
from sqlalchemy.orm.session import Session

from app.src.db import Order, User, VehicleHandover
from app.src.enums import HandoverType, UserRole
from app.src.policy import Action, authorize, orderAccess
from app.src.schemas import HandoverDetails
from app.src.transitions import HANDOVER_ALLOWED_STATES, HANDOVER_ORDER_STATUS
from app.src.core.order import lockOrder
from app.src import exceptions, validators


def createVehicleHandover(
    session: Session, actor: User, orderId: int, details: HandoverDetails
) -> tuple[VehicleHandover, Order]:
    """
    Record the vehicle condition at pickup or delivery.

    A pickup starts the job (`assigned -> in_progress`, a no-op for orders
    already in progress); a delivery completes it. The report and the order
    status change are committed together. Each order gets at most one report
    per handover type.

    Raises:
        exceptions.InvalidIdentifier: If the order does not exist.
        exceptions.NotAssignedDriver: If the actor is not the order's driver.
        exceptions.DuplicateHandover: If this handover was already recorded.
        exceptions.InvalidStateTransition: If the order is in the wrong status.
    """
    authorize(actor, Action.SUBMIT_HANDOVER)
    validators.activeAccount(actor)
    try:
        order = lockOrder(session, orderId)
        if order.assigned_driver_id != actor.id:
            raise exceptions.NotAssignedDriver()
        recorded = (
            session.query(VehicleHandover.id)
            .filter(
                VehicleHandover.order_id == order.id,
                VehicleHandover.handover_type == details.handover_type,
            )
            .first()
        )
        if recorded is not None:
            raise exceptions.DuplicateHandover()
        if order.status not in HANDOVER_ALLOWED_STATES[details.handover_type]:
            raise exceptions.InvalidStateTransition(Order.status)

        location = details.location
        if not location:
            if details.handover_type == HandoverType.PICKUP:
                location = order.pickup_location
            else:
                location = order.delivery_location
        handover = VehicleHandover(
            order_id=order.id,
            driver_id=actor.id,
            handover_type=details.handover_type,
            km_reading=details.km_reading,
            fuel_level=details.fuel_level,
            vehicle_condition=details.vehicle_condition,
            damage_notes=details.damage_notes,
            photos=list(details.photos),
            signature=details.signature,
            location=location,
        )
        session.add(handover)
        order.status = HANDOVER_ORDER_STATUS[details.handover_type]
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(handover)
    session.refresh(order)
    return handover, order


def getHandovers(
    session: Session, actor: User, orderId: int | None = None
) -> List[VehicleHandover]:
    """Handover reports of an order; administrators may list every report."""
    authorize(actor, Action.VIEW_HANDOVER)
    query = session.query(VehicleHandover)
    if orderId is None:
        if actor.role != UserRole.ADMIN:
            raise exceptions.MissingParameter(VehicleHandover.order_id)
    else:
        order = session.query(Order).filter(Order.id == orderId).first()
        if order is None:
            raise exceptions.InvalidIdentifier()
        orderAccess(actor, order)
        query = query.filter(VehicleHandover.order_id == orderId)
    return query.order_by(VehicleHandover.id.asc()).all()
