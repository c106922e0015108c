from fastapi import APIRouter, Request
from pydantic import BaseModel

from zephra.api.deps.rate_limit import enforce_rate_limit
from zephra.core.csrf import CSRF_TOKEN_TTL_SECONDS, csrf_protection, session_id_of
from zephra.core.rate_limit import DEFAULT_LIMIT, get_client_ip

router = APIRouter(tags=["csrf"])


class CsrfTokenResponse(BaseModel):
    token: str
    expires_in: int


@router.get("/csrf", response_model=CsrfTokenResponse)
async def issue_csrf_token(request: Request) -> CsrfTokenResponse:
    """Issue a CSRF token bound to the x-session-id header."""
    await enforce_rate_limit(request, f"csrf:{get_client_ip(request)}", DEFAULT_LIMIT)

    return CsrfTokenResponse(
        token=csrf_protection.create_token(session_id_of(request)),
        expires_in=CSRF_TOKEN_TTL_SECONDS,
    )
