"""Port to the scan and claim business logic.

Persistence, fraud scoring and NFT minting live outside this service. Routes
only reach an implementation of ``AbstractTagService`` after the CSRF and
rate limit checks have passed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from etags.core.errors import ServiceUnavailableAppError
from etags.schemas.tags import ClaimNFTRequest, ClaimRequest, ScanRequest

logger = logging.getLogger(__name__)


class AbstractTagService(ABC):
    """Business operations behind the guarded tag endpoints.

    Each method returns the JSON payload sent back to the client.
    """

    @abstractmethod
    async def record_scan(
        self,
        scan: ScanRequest,
        *,
        client_ip: str,
        user_agent: str | None,
    ) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def claim_tag(self, claim: ClaimRequest, *, client_ip: str) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def claim_nft(self, claim: ClaimNFTRequest, *, client_ip: str) -> dict[str, Any]:
        raise NotImplementedError


class UnconfiguredTagService(AbstractTagService):
    """Placeholder used until a real backend is wired in; answers 503."""

    def _unavailable(self, operation: str) -> ServiceUnavailableAppError:
        logger.error("tag_service.unconfigured", extra={"operation": operation})
        return ServiceUnavailableAppError(
            code="tag_service_unavailable",
            message="Tag service is not available. Please try again later.",
        )

    async def record_scan(self, scan, *, client_ip, user_agent):
        raise self._unavailable("record_scan")

    async def claim_tag(self, claim, *, client_ip):
        raise self._unavailable("claim_tag")

    async def claim_nft(self, claim, *, client_ip):
        raise self._unavailable("claim_nft")


_tag_service: AbstractTagService = UnconfiguredTagService()


def get_tag_service() -> AbstractTagService:
    """FastAPI dependency returning the configured tag service."""

    return _tag_service


def set_tag_service(service: AbstractTagService) -> None:
    global _tag_service
    _tag_service = service
