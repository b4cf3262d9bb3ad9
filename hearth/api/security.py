"""Security routes: CSRF token issuance."""

from fastapi import APIRouter, Depends

from hearth.auth.context import AuthContext
from hearth.auth.policies import require_auth
from hearth.auth.security import generate_csrf_token

router = APIRouter(prefix="/security", tags=["security"])


@router.get("/csrf")
async def csrf_token(ctx: AuthContext = Depends(require_auth())):
    """
    Issue a CSRF token.

    The client keeps it and echoes it back in X-CSRF-Token on
    cookie-authenticated form posts.
    """
    return {"csrf_token": generate_csrf_token()}
