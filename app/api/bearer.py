from fastapi.security import HTTPBearer

# Every role authenticates with the same bearer token scheme
bearer_user = HTTPBearer(scheme_name="User HTTPBearer")
