from typing import List
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

from app.db.session import get_db, get_read_db  # noqa: F401  (reexportados para as rotas)
from app.core.tokens import decode_access


class Principal(BaseModel):
    """Usuário autenticado pelo serviço de auth externo (claims do token)."""
    id: str
    email: str = ""
    roles: List[str] = []

    @property
    def actor_id(self) -> int | None:
        return int(self.id) if self.id.isdigit() else None


# ----------------------------------------------------------------------
# Lê o Bearer do header Authorization (sem usar OAuth2PasswordBearer)
# ----------------------------------------------------------------------
def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]

def get_current_user(token: str = Depends(get_bearer_token)) -> Principal:
    payload = decode_access(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    return Principal(
        id=str(payload["sub"]),
        email=(payload.get("email") or "").lower(),
        roles=[str(r).lower() for r in payload.get("roles") or []],
    )
