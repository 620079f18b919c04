"""Role-guarded endpoints: return the authenticated user when they hold an allowed role."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.v1.auth import require_any_role
from app.core.responses import success
from app.models import User
from app.schemas.auth import ApiResponse
from app.services.auth_workflows import user_payload
from app.services.roles import ADMIN, SUBSCRIBER, SUPER_ADMIN, USER

router = APIRouter()


@router.get("/admin", response_model=ApiResponse)
def get_admin(
    user: Annotated[User, Depends(require_any_role(ADMIN, SUPER_ADMIN))],
) -> JSONResponse:
    """Admin or Super Admin only."""
    return success("Authorized.", user_payload(user))


@router.get("/user", response_model=ApiResponse)
def get_user(
    user: Annotated[User, Depends(require_any_role(USER))],
) -> JSONResponse:
    return success("Authorized.", user_payload(user))


@router.get("/subscriber", response_model=ApiResponse)
def get_subscriber(
    user: Annotated[User, Depends(require_any_role(SUBSCRIBER))],
) -> JSONResponse:
    return success("Authorized.", user_payload(user))
