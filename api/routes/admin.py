"""
api/routes/admin.py -- GET /api/admin/check: lets the client decide whether to render admin controls.

The answer is informational only. Every admin-only action is re-checked on
the server by require_admin() or the authorization policy.
"""

from fastapi import APIRouter, Depends

from api.models import AdminCheckResponse
from auth.dependencies import get_principal
from auth.models import Principal

router = APIRouter()


@router.get("/admin/check", response_model=AdminCheckResponse)
def check_admin(principal: Principal = Depends(get_principal)) -> AdminCheckResponse:
    return AdminCheckResponse(is_admin=principal.is_admin, client_msg="Successfully checked admin rights!")
