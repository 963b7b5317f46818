"""
Unit tests for the ledger port, its adapters and audit dispatch.
"""

import json

import httpx
import pytest

from aetherseal.exceptions import ConfigurationError
from aetherseal.ledger import (
    EVENT_VERIFIED,
    AuditDispatcher,
    HttpLedger,
    LedgerInterface,
    MemoryLedger,
)
from aetherseal.types import LicenseType, Visibility

from conftest import SEAL_ID, make_entry


RESOLVE_BODY = {
    "success": True,
    "seal": {
        "sealId": SEAL_ID,
        "userId": "u_123",
        "cdnUrl": "https://cdn.example.com/a.png",
        "r2Path": "seals/a.png",
        "modelProvider": "fal",
        "modelName": None,
        "pipelineMode": "txt2img",
        "visibility": "unlisted",
        "revokedAt": None,
        "createdAt": "2026-03-01T12:00:00+00:00",
    },
    "creator": {"displayName": "Aiko", "avatarUrl": None},
    "licenseType": "cc_by_nc",
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FailingLedger(LedgerInterface):
    async def lookup(self, seal_id):
        raise httpx.ConnectError("ledger down")

    async def record_event(self, seal_id, event):
        raise httpx.ConnectError("ledger down")


class TestMemoryLedger:
    """Tests for the in-memory ledger."""

    @pytest.mark.asyncio
    async def test_register_and_lookup(self, memory_ledger, entry, creator):
        await memory_ledger.register(entry, creator)
        resolution = await memory_ledger.lookup(entry.seal_id)

        assert resolution.entry == entry
        assert resolution.creator.display_name == "Aiko"

    @pytest.mark.asyncio
    async def test_lookup_unknown(self, memory_ledger):
        assert await memory_ledger.lookup("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_register_rejected(self, memory_ledger, entry):
        await memory_ledger.register(entry)
        with pytest.raises(ValueError):
            await memory_ledger.register(entry)

    @pytest.mark.asyncio
    async def test_revoke_is_permanent(self, memory_ledger, entry):
        """Revoking twice keeps the first timestamp."""
        await memory_ledger.register(entry)
        first = await memory_ledger.revoke(entry.seal_id, revoked_at="2026-04-01T00:00:00+00:00")
        second = await memory_ledger.revoke(entry.seal_id, revoked_at="2026-05-01T00:00:00+00:00")

        assert first.is_revoked
        assert second.revoked_at == "2026-04-01T00:00:00+00:00"
        resolution = await memory_ledger.lookup(entry.seal_id)
        assert resolution.entry.is_revoked

    @pytest.mark.asyncio
    async def test_revoke_unknown(self, memory_ledger):
        with pytest.raises(KeyError):
            await memory_ledger.revoke("nope")

    @pytest.mark.asyncio
    async def test_record_event(self, memory_ledger):
        await memory_ledger.record_event(SEAL_ID, {"event_type": EVENT_VERIFIED, "tier": "legacy"})

        events = memory_ledger.events
        assert len(events) == 1
        assert events[0].event_type == EVENT_VERIFIED
        assert events[0].metadata["tier"] == "legacy"


class TestHttpLedger:
    """Tests for the resolve API adapter."""

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError, match="SEAL_CHECKER_API_KEY"):
            HttpLedger("")

    @pytest.mark.asyncio
    async def test_lookup(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers["x-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=RESOLVE_BODY)

        async with mock_client(handler) as client:
            ledger = HttpLedger("secret", base_url="https://owm.test/", client=client)
            resolution = await ledger.lookup(SEAL_ID)

        assert seen["url"] == "https://owm.test/api/seal/resolve"
        assert seen["api_key"] == "secret"
        assert seen["body"] == {"sealId": SEAL_ID}

        entry = resolution.entry
        assert entry.seal_id == SEAL_ID
        assert entry.asset.storage_path == "seals/a.png"
        assert entry.visibility == Visibility.UNLISTED
        assert entry.license_type == LicenseType.CC_BY_NC
        assert entry.is_revoked is False
        assert resolution.creator.display_name == "Aiko"

    @pytest.mark.asyncio
    async def test_lookup_not_found(self):
        async with mock_client(lambda request: httpx.Response(404)) as client:
            ledger = HttpLedger("secret", client=client)
            assert await ledger.lookup(SEAL_ID) is None

    @pytest.mark.asyncio
    async def test_lookup_unsuccessful_body(self):
        async with mock_client(lambda request: httpx.Response(200, json={"success": False})) as client:
            ledger = HttpLedger("secret", client=client)
            assert await ledger.lookup(SEAL_ID) is None

    @pytest.mark.asyncio
    async def test_lookup_server_error_raises(self):
        async with mock_client(lambda request: httpx.Response(500)) as client:
            ledger = HttpLedger("secret", client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await ledger.lookup(SEAL_ID)

    @pytest.mark.asyncio
    async def test_record_event(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        async with mock_client(handler) as client:
            ledger = HttpLedger("secret", client=client)
            await ledger.record_event(SEAL_ID, {"event_type": EVENT_VERIFIED})

        assert seen["body"] == {"sealId": SEAL_ID, "recordEvent": {"event_type": EVENT_VERIFIED}}


class TestAuditDispatcher:
    """Tests for fire-and-forget audit writes."""

    @pytest.mark.asyncio
    async def test_dispatch_delivers(self, memory_ledger):
        dispatcher = AuditDispatcher(memory_ledger)
        dispatcher.dispatch(SEAL_ID, {"event_type": EVENT_VERIFIED})
        await dispatcher.drain()

        assert len(memory_ledger.events) == 1
        assert dispatcher.pending == 0
        assert dispatcher.failures == 0

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self):
        dispatcher = AuditDispatcher(FailingLedger())
        dispatcher.dispatch(SEAL_ID, {"event_type": EVENT_VERIFIED})
        dispatcher.dispatch(SEAL_ID, {"event_type": EVENT_VERIFIED})
        await dispatcher.drain()

        assert dispatcher.failures == 2

    @pytest.mark.asyncio
    async def test_drain_without_tasks(self, memory_ledger):
        await AuditDispatcher(memory_ledger).drain()


class TestLedgerEntry:
    """Tests for entry state helpers."""

    def test_private(self):
        assert make_entry(visibility=Visibility.PRIVATE).is_private
        assert not make_entry(visibility=Visibility.UNLISTED).is_private

    def test_license_details(self):
        assert LicenseType.CC_BY.label == "CC BY 4.0"
        assert "commercial" in LicenseType.CC_BY_NC.description
