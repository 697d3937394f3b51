# app/core/rbac.py
from fastapi import Depends, HTTPException, status
from app.api.deps import get_current_user, Principal

ROLE_ADMIN = "admin"
ROLE_TRAINER = "trainer"
ROLE_CANDIDATE = "candidate"

_HIERARCHY = [ROLE_CANDIDATE, ROLE_TRAINER, ROLE_ADMIN]
_RANK = {name: idx for idx, name in enumerate(_HIERARCHY)}

def require_roles(*roles: str):
    allowed = set(roles)
    def dep(user: Principal = Depends(get_current_user)) -> Principal:
        if not (set(user.roles) & allowed):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user
    return dep

def require_min_role(min_role: str):
    if min_role not in _RANK:
        raise RuntimeError(f"Unknown role: {min_role}")
    need = _RANK[min_role]
    def dep(user: Principal = Depends(get_current_user)) -> Principal:
        for r in user.roles:
            if _RANK.get(r, -1) >= need:
                return user
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return dep
