from datetime import datetime, timedelta, timezone
from secrets import token_hex
from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm.session import Session

from app.api.bearer import bearer_user
from app.src.constants import MAX_TOKEN_VALIDITY, MAX_USER_TOKENS
from app.src.db import User, UserToken
from app.src import argon2, exceptions, getters
from app.src.enums import AccountStatus, PlatformType
from app.src.loggers import logEvent
from app.src.functions import enumStr, fuseExceptionResponses, toDict
from app.src.urls import URL_ACCOUNT, URL_ACCOUNT_TOKEN

route_user = APIRouter()


## Output Schema
class MaskedUserTokenSchema(BaseModel):
    id: int
    user_id: int
    expires_in: int
    expires_at: datetime
    platform_type: int
    client_details: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class UserTokenSchema(MaskedUserTokenSchema):
    access_token: str
    token_type: Optional[str] = "bearer"


class UserSchema(BaseModel):
    id: int
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: int
    status: int
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    email: EmailStr = Field(Form(max_length=256))
    password: str = Field(Form(max_length=128))
    platform_type: PlatformType = Field(
        Form(description=enumStr(PlatformType), default=PlatformType.OTHER)
    )
    client_details: str | None = Field(Form(max_length=1024, default=None))


## API endpoints
@route_user.post(
    URL_ACCOUNT_TOKEN,
    tags=["Account"],
    response_model=UserTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [exceptions.InactiveAccount(), exceptions.InvalidCredentials()]
    ),
    description="""
    Issues a new access token after validating the email and password.
    Only active accounts can log in.
    Limits tokens per user using MAX_USER_TOKENS, the oldest token is dropped first.
    Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    Stored password hashes made with outdated parameters are upgraded on login.
    Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm = Depends(),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        user = session.query(User).filter(User.email == fParam.email).first()
        if user is None:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(fParam.password, user.password):
            raise exceptions.InvalidCredentials()
        if user.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        if argon2.needsRehash(user.password):
            user.password = argon2.makePassword(fParam.password)

        # Remove excess tokens from DB
        tokens = (
            session.query(UserToken)
            .filter(UserToken.user_id == user.id)
            .order_by(UserToken.created_on.desc(), UserToken.id.desc())
            .all()
        )
        for token in tokens[MAX_USER_TOKENS - 1 :]:
            session.delete(token)
        session.flush()

        # Create a new token
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token = UserToken(
            user_id=user.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expires_at,
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        tokenData = jsonable_encoder(toDict(token))
        tokenLogData = tokenData.copy()
        tokenLogData.pop("access_token")
        logEvent(user, request_info, tokenLogData)
        return tokenData
    except Exception as e:
        exceptions.handle(e)


@route_user.patch(
    URL_ACCOUNT_TOKEN,
    tags=["Account"],
    response_model=UserTokenSchema,
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Refreshes the access token used in this request.
    Extends expires_at by MAX_TOKEN_VALIDITY seconds.
    Rotates the access_token value (invalidates the old token immediately).
    Logs the refresh event for auditability.
    """,
)
async def refresh_token(
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)

        token.expires_in += MAX_TOKEN_VALIDITY
        token.expires_at = token.expires_at + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token.access_token = token_hex(32)
        session.commit()
        session.refresh(token)

        tokenData = jsonable_encoder(toDict(token))
        tokenLogData = tokenData.copy()
        tokenLogData.pop("access_token")
        logEvent(user, request_info, tokenLogData)
        return tokenData
    except Exception as e:
        exceptions.handle(e)


@route_user.delete(
    URL_ACCOUNT_TOKEN,
    tags=["Account"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Revokes the access token used in this request (logout).
    Logs the token revocation event for audit tracking.
    """,
)
async def delete_token(
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        tokenLogData = jsonable_encoder(toDict(token))
        tokenLogData.pop("access_token")

        session.delete(token)
        session.commit()
        logEvent(user, request_info, tokenLogData)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)


@route_user.get(
    URL_ACCOUNT_TOKEN,
    tags=["Account"],
    response_model=List[MaskedUserTokenSchema],
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Lists the tokens of the authenticated user, newest first.
    The access_token content is never returned.
    """,
)
async def fetch_tokens(
    bearer=Depends(bearer_user), session: Session = Depends(getters.dbSession)
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return (
            session.query(UserToken)
            .filter(UserToken.user_id == user.id)
            .order_by(UserToken.id.desc())
            .all()
        )
    except Exception as e:
        exceptions.handle(e)


@route_user.get(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=UserSchema,
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Returns the account of the authenticated user, including its role and status.
    """,
)
async def fetch_account(
    bearer=Depends(bearer_user), session: Session = Depends(getters.dbSession)
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return user
    except Exception as e:
        exceptions.handle(e)
