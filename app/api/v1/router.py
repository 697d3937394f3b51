# app/api/v1/router.py
from fastapi import APIRouter, Depends
from app.api.v1 import health, approvals, certificates, templates
from app.core.rbac import require_roles, ROLE_ADMIN

api_router = APIRouter()

# -------- rotas públicas --------
api_router.include_router(health.router, tags=["health"])
api_router.include_router(certificates.verify_router, tags=["verification"])

# -------- rotas administrativas --------
api_router.include_router(approvals.router, tags=["certificate-requests"])
api_router.include_router(
    certificates.router, prefix="/certificates", tags=["certificates"],
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
api_router.include_router(
    templates.router, prefix="/certificate-templates", tags=["certificate-templates"],
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
