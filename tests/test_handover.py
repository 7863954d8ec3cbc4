import pytest

from app.src import exceptions
from app.src.core import handover as handoverCore
from app.src.core import order as orderCore
from app.src.db import Order, VehicleHandover
from app.src.enums import HandoverType, OrderStatus, UserRole
from app.src.schemas import HandoverDetails


def report(handoverType=HandoverType.PICKUP, **changes) -> HandoverDetails:
    fields = {
        "handover_type": handoverType,
        "km_reading": 48211,
        "fuel_level": "3/4",
        "vehicle_condition": "Clean, small scratch on rear bumper",
        "photos": ["handover/front.jpg", "handover/rear.jpg"],
    }
    fields.update(changes)
    return HandoverDetails(**fields)


def test_pickup_starts_the_job(session, driver, assignedOrder):
    handover, order = handoverCore.createVehicleHandover(
        session, driver, assignedOrder.id, report()
    )

    assert order.status == OrderStatus.IN_PROGRESS
    assert handover.order_id == order.id
    assert handover.driver_id == driver.id
    assert handover.handover_type == HandoverType.PICKUP
    assert handover.km_reading == 48211
    assert handover.photos == ["handover/front.jpg", "handover/rear.jpg"]
    assert handover.location == "Munich"
    assert handover.handover_on is not None


def test_delivery_completes_the_job(session, driver, auctionOrder):
    handoverCore.createVehicleHandover(session, driver, auctionOrder.id, report())
    handover, order = handoverCore.createVehicleHandover(
        session,
        driver,
        auctionOrder.id,
        report(HandoverType.DELIVERY, km_reading=48500, location="Yard 4, Hamburg"),
    )

    assert order.status == OrderStatus.COMPLETED
    assert handover.location == "Yard 4, Hamburg"


def test_each_handover_is_recorded_once(session, driver, assignedOrder):
    handoverCore.createVehicleHandover(session, driver, assignedOrder.id, report())

    with pytest.raises(exceptions.DuplicateHandover):
        handoverCore.createVehicleHandover(session, driver, assignedOrder.id, report())

    assert session.query(VehicleHandover).count() == 1


def test_delivery_needs_a_running_job(session, driver, assignedOrder):
    with pytest.raises(exceptions.InvalidStateTransition):
        handoverCore.createVehicleHandover(
            session, driver, assignedOrder.id, report(HandoverType.DELIVERY)
        )

    session.expire_all()
    assert session.get(Order, assignedOrder.id).status == OrderStatus.ASSIGNED
    assert session.query(VehicleHandover).count() == 0


def test_cancelled_order_takes_no_handover(session, driver, assignedOrder):
    orderCore.updateOrderStatus(session, driver, assignedOrder.id, OrderStatus.CANCELLED)

    with pytest.raises(exceptions.InvalidStateTransition):
        handoverCore.createVehicleHandover(session, driver, assignedOrder.id, report())


def test_only_the_assigned_driver_reports(session, admin, driver2, assignedOrder):
    with pytest.raises(exceptions.NotAssignedDriver):
        handoverCore.createVehicleHandover(session, driver2, assignedOrder.id, report())
    with pytest.raises(exceptions.NoPermission):
        handoverCore.createVehicleHandover(session, admin, assignedOrder.id, report())
    with pytest.raises(exceptions.InvalidIdentifier):
        handoverCore.createVehicleHandover(session, driver2, 404, report())


def test_list_handovers(session, admin, driver, driver2, assignedOrder, makeUser):
    handoverCore.createVehicleHandover(session, driver, assignedOrder.id, report())

    assert len(handoverCore.getHandovers(session, admin)) == 1
    assert len(handoverCore.getHandovers(session, admin, assignedOrder.id)) == 1
    assert len(handoverCore.getHandovers(session, driver, assignedOrder.id)) == 1

    with pytest.raises(exceptions.MissingParameter):
        handoverCore.getHandovers(session, driver)
    with pytest.raises(exceptions.NoPermission):
        handoverCore.getHandovers(session, driver2, assignedOrder.id)
    with pytest.raises(exceptions.NoPermission):
        handoverCore.getHandovers(session, makeUser(UserRole.DISPONENT), assignedOrder.id)
    with pytest.raises(exceptions.InvalidIdentifier):
        handoverCore.getHandovers(session, admin, 404)


def test_handovers_go_with_their_order(session, admin, driver, assignedOrder):
    handoverCore.createVehicleHandover(session, driver, assignedOrder.id, report())

    orderCore.deleteOrder(session, admin, assignedOrder.id)

    assert session.query(VehicleHandover).count() == 0
