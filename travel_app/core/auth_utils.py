from fastapi import HTTPException

from travel_app.core.jwt import decode_access_token
from travel_app.core.redis import is_token_revoked


def decode_token(token: str):
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if "sub" not in payload or "role" not in payload:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    if payload.get("jti") and is_token_revoked(payload["jti"]):
        raise HTTPException(status_code=401, detail="Token has been revoked")

    return payload
