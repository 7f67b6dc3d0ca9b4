from dataclasses import dataclass
from datetime import datetime, timezone

from travel_app.core.redis import revoke_token
from travel_app.models.enums import UserRole


@dataclass(frozen=True)
class SessionContext:
    """
    Who is making the current request.

    Loaded from a verified access token plus the matching user row at the start
    of every authenticated request and handed to the services explicitly.
    ``clear()`` ends the session by revoking the token until it would have
    expired anyway.
    """

    user_id: int
    email: str
    name: str
    role: UserRole
    token_id: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def load(cls, payload: dict, user) -> "SessionContext":
        exp = payload.get("exp")
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=UserRole(user.role),
            token_id=payload.get("jti"),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.AGENT)

    def owns(self, user_id: int) -> bool:
        return self.user_id == user_id

    def can_access(self, user_id: int) -> bool:
        """Staff see everything, customers only their own records."""
        return self.is_staff or self.owns(user_id)

    def clear(self):
        if not self.token_id or not self.expires_at:
            return
        remaining = int((self.expires_at - datetime.now(timezone.utc)).total_seconds())
        revoke_token(self.token_id, remaining)
