from fastapi.encoders import jsonable_encoder

from app.src.db import User
from app.src import openobserve
from app.src.schemas import RequestInfo


def logEvent(user: User, requestInfo: RequestInfo, data: dict) -> None:
    """
    Log an event to OpenObserve with request and user context.

    Args:
        user (User): Authenticated user performing the action.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Event-specific details, usually the changed entity.

    Notes:
        - Automatically attaches `_method`, `_path`, `_user_id` and `_role`.
        - `data` is expected in its JSON form, as returned to the client.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_user_id": user.id,
        "_role": user.role,
    }
    logDetails.update(jsonable_encoder(data))
    openobserve.logEvent(logDetails)
