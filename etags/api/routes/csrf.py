from __future__ import annotations

from fastapi import APIRouter, Response

from etags.core.csrf import generate_csrf_token, get_csrf_header_name
from etags.schemas.tags import CSRFTokenResponse

router = APIRouter(prefix="/api", tags=["CSRF"])


@router.get("/csrf", response_model=CSRFTokenResponse, response_model_by_alias=True)
async def issue_csrf_token(response: Response) -> CSRFTokenResponse:
    """Issue a CSRF token.

    Sets the ``csrf_token`` cookie and returns the same value with the header
    name clients must echo it in on state-changing requests.
    """

    token = generate_csrf_token(response)
    return CSRFTokenResponse(token=token, header_name=get_csrf_header_name())
