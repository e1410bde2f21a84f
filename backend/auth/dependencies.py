import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.core.context import KNOWN_ROLES, CallerContext
from backend.database import SessionLocal
from backend.models.user import User

security = HTTPBearer(auto_error=False)


def lookup_role(user_id: str) -> str | None:
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
    finally:
        db.close()
    return user.role if user else None


def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CallerContext:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    caller_id = payload.get("sub")
    if not caller_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    role = payload.get("role") or lookup_role(caller_id)
    if role is not None:
        role = role.strip().lower()
    if role not in KNOWN_ROLES:
        role = None
    return CallerContext(caller_id=caller_id, role=role)
