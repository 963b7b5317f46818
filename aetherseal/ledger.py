"""
Aether Seal ledger port.

The ledger is the authoritative record of registered assets and their
revocation and visibility state. The core reads entries and appends audit
events; it never mutates entries itself.

Audit writes are best-effort: AuditDispatcher delivers them in background
tasks after the verification outcome is computed, so a failing ledger can
neither delay nor fail a verification. Durable delivery (retry, queueing) is
the ledger's responsibility.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import httpx

from aetherseal.config import DEFAULT_HTTP_TIMEOUT, OWM_API_URL
from aetherseal.exceptions import ConfigurationError
from aetherseal.schemas import ResolveResponse
from aetherseal.types import CreatorInfo, LedgerEntry, LedgerResolution, truncate_seal_id

logger = logging.getLogger(__name__)

EVENT_VERIFIED = "VERIFIED"
EVENT_CERT_ISSUED = "CERT_ISSUED"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class LedgerEvent:
    """An audit event appended to the ledger."""

    seal_id: str
    event_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    recorded_at: str = field(default_factory=utc_now_iso)


class LedgerInterface(ABC):
    """Abstract interface for ledger backends."""

    @abstractmethod
    async def lookup(self, seal_id: str) -> Optional[LedgerResolution]:
        """
        Resolve a seal id.

        Returns:
            The resolution, or None if the seal is not registered.

        Raises:
            Exception: On transport faults. Callers treat these as a miss.
        """
        pass

    @abstractmethod
    async def record_event(self, seal_id: str, event: Dict[str, Any]) -> None:
        """Append an audit event for a seal."""
        pass


class MemoryLedger(LedgerInterface):
    """
    In-memory ledger for testing and single-instance deployments.

    Example:
        >>> ledger = MemoryLedger()
        >>> await ledger.register(entry, CreatorInfo(display_name="Aiko"))
        >>> resolution = await ledger.lookup(entry.seal_id)
    """

    def __init__(self):
        self._entries: Dict[str, LedgerEntry] = {}
        self._creators: Dict[str, CreatorInfo] = {}
        self._events: List[LedgerEvent] = []
        self._lock = asyncio.Lock()

    async def register(self, entry: LedgerEntry, creator: Optional[CreatorInfo] = None) -> None:
        """Register an asset."""
        async with self._lock:
            if entry.seal_id in self._entries:
                raise ValueError(f"Seal already registered: {entry.seal_id}")
            self._entries[entry.seal_id] = entry
            if creator is not None:
                self._creators[entry.seal_id] = creator

    async def revoke(self, seal_id: str, revoked_at: Optional[str] = None) -> LedgerEntry:
        """
        Revoke a seal. Revocation is permanent; revoking twice keeps the
        original timestamp.

        Raises:
            KeyError: If the seal is not registered.
        """
        async with self._lock:
            entry = self._entries[seal_id]
            if entry.revoked_at is not None:
                return entry
            entry = replace(entry, revoked_at=revoked_at or utc_now_iso())
            self._entries[seal_id] = entry
            logger.info(f"Revoked seal: {truncate_seal_id(seal_id)}")
            return entry

    async def lookup(self, seal_id: str) -> Optional[LedgerResolution]:
        async with self._lock:
            entry = self._entries.get(seal_id)
            if entry is None:
                return None
            return LedgerResolution(entry=entry, creator=self._creators.get(seal_id))

    async def record_event(self, seal_id: str, event: Dict[str, Any]) -> None:
        async with self._lock:
            self._events.append(
                LedgerEvent(
                    seal_id=seal_id,
                    event_type=str(event.get("event_type", EVENT_VERIFIED)),
                    metadata=dict(event),
                )
            )

    @property
    def events(self) -> List[LedgerEvent]:
        return list(self._events)


class HttpLedger(LedgerInterface):
    """
    Ledger reached through the marketplace resolve API.

    POST {base_url}/api/seal/resolve with the x-api-key header.

    Raises:
        ConfigurationError: If no API key is supplied.
    """

    RESOLVE_PATH = "/api/seal/resolve"

    def __init__(
        self,
        api_key: str,
        base_url: str = OWM_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ConfigurationError("SEAL_CHECKER_API_KEY is not configured")
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}{self.RESOLVE_PATH}"
        self._timeout = timeout
        self._client = client

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        headers = {"Content-Type": "application/json", "x-api-key": self._api_key}
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            return await client.post(self._url, json=body, headers=headers)
        finally:
            if self._client is None:
                await client.aclose()

    async def lookup(self, seal_id: str) -> Optional[LedgerResolution]:
        response = await self._post({"sealId": seal_id})
        if response.status_code == 404:
            return None
        response.raise_for_status()

        body = ResolveResponse.model_validate(response.json())
        if not body.success or body.seal is None:
            return None

        return LedgerResolution(
            entry=body.seal.to_entry(license_type=body.license_type),
            creator=body.creator.to_creator() if body.creator else None,
        )

    async def record_event(self, seal_id: str, event: Dict[str, Any]) -> None:
        response = await self._post({"sealId": seal_id, "recordEvent": event})
        response.raise_for_status()


class AuditDispatcher:
    """
    Fire-and-forget delivery of audit events.

    Each event is written in its own task; failures are logged and counted,
    never raised. drain() waits for in-flight writes (tests, shutdown).
    """

    def __init__(self, ledger: LedgerInterface):
        self._ledger = ledger
        self._tasks: Set[asyncio.Task] = set()
        self._failures = 0

    def dispatch(self, seal_id: str, event: Dict[str, Any]) -> asyncio.Task:
        """Schedule an audit write. Must be called from a running event loop."""
        task = asyncio.get_running_loop().create_task(self._deliver(seal_id, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, seal_id: str, event: Dict[str, Any]) -> None:
        try:
            await self._ledger.record_event(seal_id, event)
        except Exception as e:
            self._failures += 1
            logger.error(f"Audit write failed for {truncate_seal_id(seal_id)}: {e}")

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def failures(self) -> int:
        return self._failures
