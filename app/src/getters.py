from typing import Iterator
from fastapi import Request
from sqlalchemy.orm.session import Session

from app.src import schemas, validators
from app.src.db import User, UserToken, sessionMaker


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
    """
    return schemas.RequestInfo(method=request.method, path=request.url.path)


def dbSession() -> Iterator[Session]:
    """
    Per-request database session.
    Overridden in tests to point the API at a throwaway store.
    """
    session = sessionMaker()
    try:
        yield session
    finally:
        session.close()


def tokenUser(access_token: str, session: Session) -> tuple[UserToken, User]:
    """Resolve a bearer token into the token row and the user owning it."""
    token = validators.userToken(access_token, session)
    user = session.query(User).filter(User.id == token.user_id).first()
    return token, user
