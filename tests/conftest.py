"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``etags.core.config``,
so settings never pick up a developer's local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("CSRF_SECRET", "test-csrf-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any

import pytest

from etags.core import csrf as csrf_module
from etags.core import rate_limit as rate_limit_module
from etags.services import tags as tags_module
from etags.services.tags import AbstractTagService, UnconfiguredTagService


class FakeTagService(AbstractTagService):
    """Records calls instead of touching a database or chain."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    async def record_scan(self, scan, *, client_ip, user_agent):
        self.calls.append(("record_scan", scan))
        return {"success": True, "isAuthentic": True, "tagCode": scan.tag_code}

    async def claim_tag(self, claim, *, client_ip):
        self.calls.append(("claim_tag", claim))
        return {"success": True, "message": "Claim recorded"}

    async def claim_nft(self, claim, *, client_ip):
        self.calls.append(("claim_nft", claim))
        return {"success": True, "message": "NFT minted", "nft": {"tokenId": "1"}}


@pytest.fixture(autouse=True)
def _isolate_process_state():
    """Give every test a fresh limiter, signer and tag service."""
    rate_limit_module.set_rate_limiter(None)
    csrf_module.set_signer(None)
    tags_module.set_tag_service(UnconfiguredTagService())
    yield
    rate_limit_module.set_rate_limiter(None)
    csrf_module.set_signer(None)
    tags_module.set_tag_service(UnconfiguredTagService())


@pytest.fixture
def fake_tag_service() -> FakeTagService:
    return FakeTagService()
