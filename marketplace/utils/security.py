from typing import Any, Dict

import jwt

from marketplace.core.config import JWT_ALGORITHM, JWT_SECRET


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a bearer token issued by the auth service; raises jwt.InvalidTokenError."""
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], options={"require": ["sub"]}, leeway=60)


def current_user_from_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(payload["sub"]),
        "name": payload.get("name") or payload.get("email") or "Unknown",
        "role": payload.get("role", "user"),
    }
