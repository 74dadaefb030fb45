"""
Ledger anchoring for registered devices.
The ledger itself is simulated: anchors hand back a receipt (hash, block, timestamp, explorer link)
or report that the commit failed.
"""

import abc
import hashlib
import logging
import random
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from charger_registry.config import ANCHOR_FAILURE_RATE, EXPLORER_BASE_URL
from charger_registry.models import AnchorResult, DeviceInput, OnChainRecord

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def explorer_url(transaction_hash: str, base_url: str = EXPLORER_BASE_URL) -> str:
    return f"{base_url}/tx/{transaction_hash}"


class LedgerAnchor(abc.ABC):
    """Commits a device record to the ledger."""

    @abc.abstractmethod
    async def anchor(self, device_id: int, device: DeviceInput) -> AnchorResult:
        """Return a receipt on success, ``AnchorResult(success=False)`` otherwise."""


class SimulatedLedgerAnchor(LedgerAnchor):
    """Stand-in for the Dione L1 testnet: random receipts, optional random failures."""

    def __init__(
        self,
        failure_rate: float = ANCHOR_FAILURE_RATE,
        explorer_base_url: str = EXPLORER_BASE_URL,
        rng: Optional[random.Random] = None,
    ):
        self.failure_rate = failure_rate
        self.explorer_base_url = explorer_base_url
        self._rng = rng or random.Random()

    async def anchor(self, device_id: int, device: DeviceInput) -> AnchorResult:
        logger.info(f"Storing device {device_id} ({device.manufacturer} {device.model}) on Dione L1")
        if self.failure_rate and self._rng.random() < self.failure_rate:
            logger.warning(f"Simulated ledger rejected device {device_id}")
            return AnchorResult(success=False)

        tx_hash = f"0x{secrets.token_hex(16)}"
        record = OnChainRecord(
            transaction_hash=tx_hash,
            timestamp_utc=_iso_utc(_utc_now()),
            block_number=secrets.randbelow(1_000_000),
            explorer_url=explorer_url(tx_hash, self.explorer_base_url),
        )
        return AnchorResult(success=True, record=record)


class DeterministicLedgerAnchor(LedgerAnchor):
    """Predictable receipts so callers can assert exact values."""

    def __init__(
        self,
        start_block: int = 1000,
        clock: Callable[[], datetime] = lambda: datetime(2024, 1, 1, tzinfo=timezone.utc),
        fail: bool = False,
        explorer_base_url: str = EXPLORER_BASE_URL,
    ):
        self.start_block = start_block
        self.clock = clock
        self.fail = fail
        self.explorer_base_url = explorer_base_url
        self.calls = 0

    @staticmethod
    def transaction_hash_for(device_id: int, call_number: int) -> str:
        digest = hashlib.sha256(f"{device_id}:{call_number}".encode()).hexdigest()
        return f"0x{digest[:32]}"

    async def anchor(self, device_id: int, device: DeviceInput) -> AnchorResult:
        self.calls += 1
        if self.fail:
            return AnchorResult(success=False)
        tx_hash = self.transaction_hash_for(device_id, self.calls)
        return AnchorResult(
            success=True,
            record=OnChainRecord(
                transaction_hash=tx_hash,
                timestamp_utc=_iso_utc(self.clock()),
                block_number=self.start_block + self.calls,
                explorer_url=explorer_url(tx_hash, self.explorer_base_url),
            ),
        )
