from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.src import schemas
from app.src.constants import API_TITLE, API_VERSION
from app.src.urls import URL_HEALTH
from app.api.user_token import route_user
from app.api.order import route_order
from app.api.auction import route_auction
from app.api.billing import route_billing
from app.api.handover import route_handover
from app.api.approval import route_approval


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(route_user)
app.include_router(route_order)
app.include_router(route_auction)
app.include_router(route_billing)
app.include_router(route_handover)
app.include_router(route_approval)


# Malformed or missing fields are a client error, reported like PydanticError
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
        headers={"X-Error": "PydanticError"},
    )


# Health check endpoint
@app.get(URL_HEALTH, tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
