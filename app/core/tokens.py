# app/core/tokens.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from jose import jwt, JWTError
from app.core.config import settings

ALGO = getattr(settings, "ALGORITHM", "HS256")

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _exp(minutes: int = 15) -> datetime:
    return _now() + timedelta(minutes=minutes)

def create_access_token(*, sub: str, roles: Iterable[str] = (), email: str = "") -> str:
    """Access token curto (minutos). Em produção quem emite é o serviço de auth;
    aqui fica para scripts e testes."""
    expire_min = int(getattr(settings, "ACCESS_TOKEN_EXPIRE_MINUTES", 30))
    payload: Dict[str, Any] = {
        "type": "access",
        "sub": sub,
        "email": email,
        "roles": sorted({r.lower() for r in roles}),
        "jti": uuid.uuid4().hex,
        "iat": int(_now().timestamp()),
        "exp": int(_exp(expire_min).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGO)

def decode_access(token: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGO])
    except JWTError:
        return None
    if not isinstance(payload, dict):
        return None
    if payload.get("type") != "access":
        return None
    if not payload.get("sub"):
        return None
    return payload
