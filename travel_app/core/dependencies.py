from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from travel_app.core.auth_utils import decode_token
from travel_app.core.context import SessionContext
from travel_app.db.session import SessionLocal
from travel_app.models.enums import UserRole
from travel_app.models.user import User

security = HTTPBearer()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> SessionContext:
    payload = decode_token(credentials.credentials)

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    # Role changes take effect immediately; the token role is only a hint
    return SessionContext.load(payload, user)


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def checker(ctx: SessionContext = Depends(get_current_session)) -> SessionContext:
        if ctx.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only {', '.join(sorted(r.value for r in allowed))} can access this resource",
            )
        return ctx

    return checker


admin_only = require_roles(UserRole.ADMIN)
staff_only = require_roles(UserRole.ADMIN, UserRole.AGENT)
