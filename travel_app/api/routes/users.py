from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_current_session, get_db
from travel_app.core.errors import ConflictError, ForbiddenError
from travel_app.core.logging_config import admin_logger, get_logger
from travel_app.core.security import hash_password
from travel_app.models.booking import Booking
from travel_app.models.enums import UserRole
from travel_app.models.payment import Payment
from travel_app.models.user import User
from travel_app.schemas.common import envelope, paginate
from travel_app.schemas.filters import UserFilters, user_filters
from travel_app.schemas.user import UserOut
from travel_app.services.inventory import (
    apply_changes,
    ensure_unbooked,
    get_or_404,
    ordered,
    provided,
    require_changes,
    search_filter,
)
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.images import discard_photo, store_photo
from travel_app.validation.entities import user_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/users", tags=["Users"])
logger = get_logger()

SORT_COLUMNS = {"name": User.name, "email": User.email, "role": User.role, "createdAt": User.created_at}


def _ensure_removable(db: Session, ids: list[int]):
    ensure_unbooked(db, Booking.user_id, ids, "Users with bookings")
    ensure_unbooked(db, Payment.user_id, ids, "Users with payments")


# =====================================================================
# LIST / GET (Admin)
# =====================================================================
@router.get("/")
def list_users(
    filters: UserFilters = Depends(user_filters),
    ctx: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
):
    query = db.query(User)

    if filters.search:
        query = query.filter(search_filter(filters.search, User.name, User.email))
    if filters.role:
        query = query.filter(User.role == filters.role)

    items, meta = paginate(ordered(query, SORT_COLUMNS, filters, User.id), filters.page, filters.limit)
    return envelope("Users retrieved successfully", [UserOut.model_validate(u) for u in items], meta)


@router.get("/{user_id}")
def get_user(user_id: int, ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    user = get_or_404(db, User, user_id, "User")
    return envelope("User retrieved successfully", UserOut.model_validate(user))


# =====================================================================
# UPDATE (self or Admin)
# =====================================================================
@router.put("/{user_id}")
def update_user(
    user_id: int,
    name: str | None = Form(None),
    email: str | None = Form(None),
    password: str | None = Form(None),
    phone: str | None = Form(None),
    address: str | None = Form(None),
    role: UserRole | None = Form(None),
    profile_picture: UploadFile | None = File(None, alias="profilePicture"),
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    if not (ctx.is_admin or ctx.owns(user_id)):
        raise ForbiddenError("You can only update your own profile")

    user = get_or_404(db, User, user_id, "User")

    changes = provided(name=name, email=email, password=password, phone=phone, address=address, role=role)
    has_photo = bool(profile_picture and profile_picture.filename)
    require_changes(changes, has_photo)

    if "role" in changes and not ctx.is_admin:
        raise ForbiddenError("Only ADMIN can change roles")
    if "role" in changes and ctx.owns(user_id) and changes["role"] != UserRole.ADMIN:
        raise ConflictError("Admins cannot demote themselves")

    run_validation(changes, user_rules(db, current_id=user.id), partial=True)

    if "email" in changes:
        changes["email"] = changes["email"].strip().lower()
    if "password" in changes:
        changes["password_hash"] = hash_password(changes.pop("password"))

    old_picture = user.profile_picture
    if has_photo:
        user.profile_picture = store_photo(profile_picture, "users", field="profilePicture")
    apply_changes(user, changes)

    db.commit()
    invalidate_dashboard_cache()
    db.refresh(user)

    if has_photo:
        discard_photo(old_picture)

    if "role" in changes:
        admin_logger.warning(f"User Role Changed | ID={user.id} | Role={user.role.value} | By={ctx.email}")
    logger.info(f"User Updated | ID={user.id} | By={ctx.email}")
    return envelope("User updated successfully", UserOut.model_validate(user))


# =====================================================================
# DELETE (Admin)
# =====================================================================
@router.delete("/{user_id}")
def delete_user(user_id: int, ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    if ctx.owns(user_id):
        raise ConflictError("You cannot delete your own account")

    user = get_or_404(db, User, user_id, "User")
    _ensure_removable(db, [user.id])

    picture = user.profile_picture
    db.delete(user)
    db.commit()
    invalidate_dashboard_cache()
    discard_photo(picture)

    admin_logger.info(f"User Deleted | ID={user_id} | By={ctx.email}")
    return envelope("User deleted successfully")


@router.delete("/")
def delete_all_users(ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    users = db.query(User).filter(User.id != ctx.user_id).all()
    _ensure_removable(db, [u.id for u in users])

    pictures = [u.profile_picture for u in users]
    for user in users:
        db.delete(user)
    db.commit()
    invalidate_dashboard_cache()

    for picture in pictures:
        discard_photo(picture)

    admin_logger.warning(f"Bulk User Delete | Count={len(users)} | By={ctx.email}")
    return envelope("All users deleted successfully", {"count": len(users)})
