"""Guarded tag endpoints: scan, ownership claim and NFT claim.

Every route runs the same admission sequence before business logic:
CSRF (403) → body decoding (400) → per-IP global budget → per-endpoint
budget (429) → field validation (400) → tag service.

Bodies are read inside the handler instead of being declared as parameters:
FastAPI decodes declared bodies before it resolves route dependencies, which
would let a malformed body answer ahead of the CSRF check.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ValidationError

from etags.core.config import settings
from etags.core.csrf import require_csrf
from etags.core.errors import ValidationAppError
from etags.core.rate_limit import (
    enforce_rate_limit,
    get_client_identifier,
    get_client_ip,
    rate_limit_headers,
)
from etags.schemas.tags import ClaimNFTRequest, ClaimRequest, ScanRequest
from etags.services.tags import AbstractTagService, get_tag_service

router = APIRouter(prefix="/api/scan", tags=["Scan"])

TagService = Annotated[AbstractTagService, Depends(get_tag_service)]

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_WALLET_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


async def _read_payload(request: Request, model: type[PayloadT]) -> PayloadT:
    """Decode and validate the JSON body once CSRF has passed.

    Raises:
        ValidationAppError: ``invalid_json`` for an undecodable body,
            ``invalid_payload`` when a field has the wrong type or range.
    """
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be valid JSON",
        ) from exc

    try:
        return model.model_validate(body)
    except ValidationError as exc:
        fields = [".".join(str(part) for part in err["loc"]) or "body" for err in exc.errors()]
        raise ValidationAppError(
            code="invalid_payload",
            message="Request body has invalid fields",
            details={"fields": fields},
        ) from exc


def _admit(
    response: Response,
    *,
    client_ip: str,
    fingerprint_id: str | None,
    policy: str,
    prefix: str,
) -> None:
    enforce_rate_limit("global", client_ip)
    result = enforce_rate_limit(
        policy,
        get_client_identifier(client_ip, fingerprint_id),
        prefix=prefix,
    )
    if result is not None and settings.app.rate_limit_include_headers:
        response.headers.update(rate_limit_headers(result))


def _require_fields(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise ValidationAppError(
            code="missing_fields",
            message=f"Missing required fields: {', '.join(missing)}",
            details={"fields": missing},
        )


@router.post("", dependencies=[Depends(require_csrf)])
async def scan_tag(
    request: Request,
    response: Response,
    service: TagService,
) -> dict[str, Any]:
    """Record a tag scan and return the authenticity verdict."""
    payload = await _read_payload(request, ScanRequest)
    client_ip = get_client_ip(request)
    _admit(
        response,
        client_ip=client_ip,
        fingerprint_id=payload.fingerprint_id,
        policy="scan",
        prefix="scan",
    )
    _require_fields(tagCode=payload.tag_code, fingerprintId=payload.fingerprint_id)

    return await service.record_scan(
        payload,
        client_ip=client_ip,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/claim", dependencies=[Depends(require_csrf)])
async def claim_tag(
    request: Request,
    response: Response,
    service: TagService,
) -> dict[str, Any]:
    """Record the scanner's answer to "did you buy this first-hand?"."""
    payload = await _read_payload(request, ClaimRequest)
    client_ip = get_client_ip(request)
    _admit(
        response,
        client_ip=client_ip,
        fingerprint_id=payload.fingerprint_id,
        policy="claim",
        prefix="claim",
    )
    _require_fields(tagCode=payload.tag_code, fingerprintId=payload.fingerprint_id)
    if payload.is_first_hand is None:
        raise ValidationAppError(
            code="missing_fields",
            message="Missing required fields: isFirstHand",
            details={"fields": ["isFirstHand"]},
        )

    return await service.claim_tag(payload, client_ip=client_ip)


@router.post("/claim-nft", dependencies=[Depends(require_csrf)])
async def claim_nft(
    request: Request,
    response: Response,
    service: TagService,
) -> dict[str, Any]:
    """Mint the collectible for a verified first-hand owner."""
    payload = await _read_payload(request, ClaimNFTRequest)
    client_ip = get_client_ip(request)
    _admit(
        response,
        client_ip=client_ip,
        fingerprint_id=payload.fingerprint_id,
        policy="claim",
        prefix="claim-nft",
    )
    _require_fields(
        tagCode=payload.tag_code,
        fingerprintId=payload.fingerprint_id,
        walletAddress=payload.wallet_address,
    )
    if not _WALLET_ADDRESS_RE.match(payload.wallet_address or ""):
        raise ValidationAppError(
            code="invalid_wallet_address",
            message="Please use a valid Ethereum wallet address",
            details={"field": "walletAddress"},
        )

    return await service.claim_nft(payload, client_ip=client_ip)
