from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import get_current_session, get_db
from travel_app.core.errors import UnauthorizedError
from travel_app.core.jwt import create_access_token
from travel_app.core.logging_config import get_logger
from travel_app.core.security import hash_password, verify_password
from travel_app.models.enums import UserRole
from travel_app.models.user import User
from travel_app.schemas.common import envelope
from travel_app.schemas.user import SessionOut, TokenOut, UserLogin, UserOut, UserRegister
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.validation.entities import user_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger()


def issue_token(user: User) -> TokenOut:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


# =====================================================================
#                           REGISTER
# =====================================================================
@router.post("/register", status_code=201)
def register(data: UserRegister, db: Session = Depends(get_db)):
    fields = data.model_dump()
    run_validation(fields, user_rules(db))

    # Self-registration always creates a customer; staff are promoted by an admin
    user = User(
        name=fields["name"].strip(),
        email=fields["email"].strip().lower(),
        password_hash=hash_password(fields["password"]),
        role=UserRole.CUSTOMER,
        phone=fields["phone"],
        address=fields["address"],
    )

    db.add(user)
    db.commit()
    invalidate_dashboard_cache()
    db.refresh(user)

    logger.info(f"User Registered | ID={user.id} | Email={user.email}")
    return envelope("User registered successfully", issue_token(user))


# =====================================================================
#                           LOGIN
# =====================================================================
@router.post("/login")
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(func.lower(User.email) == data.email.lower()).first()

    if not user or not verify_password(data.password, user.password_hash):
        logger.warning(f"Failed Login | Email={data.email}")
        raise UnauthorizedError("Invalid credentials")

    logger.info(f"User Login | ID={user.id} | Role={user.role.value}")
    return envelope("Login successful", issue_token(user))


# =====================================================================
#                           SESSION
# =====================================================================
@router.post("/logout")
def logout(ctx: SessionContext = Depends(get_current_session)):
    ctx.clear()
    logger.info(f"User Logout | ID={ctx.user_id}")
    return envelope("Logged out successfully")


@router.get("/me")
def me(ctx: SessionContext = Depends(get_current_session)):
    session = SessionOut(
        user_id=ctx.user_id,
        email=ctx.email,
        name=ctx.name,
        role=ctx.role,
        expires_at=ctx.expires_at,
    )
    return envelope("Session retrieved successfully", session)
