"""Pydantic schemas for the guarded tag endpoints.

Field names follow the frontend's camelCase payloads. Identity fields are
optional at the schema level so that a missing field is reported after the
admission checks run, as a 400 rather than a 422.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ScanRequest(_CamelModel):
    """Body of POST /api/scan."""

    tag_code: str | None = Field(None, alias="tagCode", description="Code printed on the tag")
    fingerprint_id: str | None = Field(
        None,
        alias="fingerprintId",
        description="Client-generated device fingerprint",
    )
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    location_name: str | None = Field(None, alias="locationName")


class ClaimRequest(ScanRequest):
    """Body of POST /api/scan/claim."""

    is_first_hand: bool | None = Field(
        None,
        alias="isFirstHand",
        description="Whether the scanner bought the product new",
    )
    source_info: str | None = Field(
        None,
        alias="sourceInfo",
        description="Where a second-hand product was obtained",
    )


class ClaimNFTRequest(_CamelModel):
    """Body of POST /api/scan/claim-nft."""

    tag_code: str | None = Field(None, alias="tagCode")
    fingerprint_id: str | None = Field(None, alias="fingerprintId")
    wallet_address: str | None = Field(
        None,
        alias="walletAddress",
        description="EVM address receiving the collectible",
    )


class CSRFTokenResponse(_CamelModel):
    """Body of GET /api/csrf."""

    token: str
    header_name: str = Field(..., alias="headerName")
