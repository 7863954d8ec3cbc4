"""
Validation checks for the Vehicle Transport Portal.

This module centralizes guard logic such as:
- Token validation
- Account status checks
- State transition enforcement

All functions raise appropriate exceptions from `app.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from typing import Any
from sqlalchemy import Column
from sqlalchemy.orm.session import Session

from app.src.db import User, UserToken
from app.src.enums import AccountStatus, UserRole
from app.src import exceptions
from app.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def userToken(access_token: str, session: Session) -> UserToken:
    """
    Validate a bearer token.

    Args:
        access_token (str): The bearer token string provided by the client.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        UserToken: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the token is not found or has expired.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(UserToken)
        .filter(
            UserToken.access_token == access_token,
            UserToken.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


# ---------------------------------------------------------------------------
# Account checks
# ---------------------------------------------------------------------------
def activeAccount(user: User) -> bool:
    """
    Validate that the acting account is active.

    Raises:
        exceptions.InactiveAccount: If the account is pending or inactive.
    """
    if user.status != AccountStatus.ACTIVE:
        raise exceptions.InactiveAccount()
    return True


def activeDriver(driver: User | None, column: Column) -> User:
    """
    Validate that a referenced user exists, is a driver and is active.

    Args:
        driver (User | None): The user looked up by the caller.
        column (Column): Column holding the reference (used in error messages).

    Raises:
        exceptions.UnknownValue: If the user does not exist.
        exceptions.InvalidValue: If the user is not a driver.
        exceptions.InactiveResource: If the driver is not active.
    """
    if driver is None:
        raise exceptions.UnknownValue(column)
    if driver.role != UserRole.DRIVER:
        raise exceptions.InvalidValue(column)
    if driver.status != AccountStatus.ACTIVE:
        raise exceptions.InactiveResource(User)
    return driver


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Returns:
        bool: True if the transition is valid.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True
