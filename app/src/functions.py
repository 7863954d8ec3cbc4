from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List
from sqlalchemy import inspect

from app.src import schemas
from app.src.constants import MONEY_QUANTUM
from app.src.exceptions import APIException


def fuseExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException]): List of instantiated exceptions.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> enumStr(OrderStatus)
        'OPEN: 1, ASSIGNED: 2, IN_PROGRESS: 3, COMPLETED: 4, CANCELLED: 5'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    OrderStatus.OPEN: [OrderStatus.ASSIGNED],
                    OrderStatus.ASSIGNED: [OrderStatus.IN_PROGRESS],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
        - Raw integers read from the DB match their IntEnum keys.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     order,
        ...     changes,
        ...     [
        ...         Order.pickup_location.key,
        ...         Order.price.key,
        ...     ],
        ... )
        # order will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)


def toDict(ormObj) -> dict:
    """Column values of an ORM instance keyed by attribute name."""
    return {
        attribute.key: getattr(ormObj, attribute.key)
        for attribute in inspect(ormObj).mapper.column_attrs
    }


def toMoney(value) -> Decimal:
    """Round a value to two fractional digits, half up."""
    return Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def percentageOf(amount, rate: Decimal) -> Decimal:
    """
    Apply a rate to an amount on the decimal representation.

    Example:
        >>> percentageOf(Decimal("123.45"), Decimal("0.10"))
        Decimal('12.35')
    """
    return toMoney(Decimal(str(amount)) * rate)


def isPast(moment: datetime) -> bool:
    """
    Whether a moment lies in the past.
    Naive values, as returned by stores without timezone support, are read as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment <= datetime.now(timezone.utc)
