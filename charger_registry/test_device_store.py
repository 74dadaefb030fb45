import asyncio
import copy
import math

import pytest

from charger_registry.device_store import SEED_DEVICES, DeviceRegistry
from charger_registry.exceptions import AnchorError, ValidationError
from charger_registry.ledger_anchor import DeterministicLedgerAnchor, SimulatedLedgerAnchor
from charger_registry.models import AnchorResult


def _valid_input(**overrides):
    data = {
        "name": "Charger 3",
        "location": {"latitude": 51.5072, "longitude": -0.1276, "zipCode": "EC1A"},
        "details": "Roadside",
        "power": 22,
        "manufacturer": "ABB",
        "model": "Terra AC",
        "status": "Available",
        "firmwareVersion": "1.0.0",
        "softwareVersion": "1.0.1",
        "connectorType": "Type 2",
        "energyCapacity": "22kW",
    }
    data.update(overrides)
    return data


def test_list_returns_seed_in_order_and_is_idempotent() -> None:
    registry = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=SEED_DEVICES)

    first = registry.list_devices()
    second = registry.list_devices()

    assert [d.id for d in first] == [1, 2]
    assert [d.name for d in first] == ["Charger 1", "Charger 2"]
    assert first == second


def test_list_hands_out_copies() -> None:
    registry = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=SEED_DEVICES)
    devices = registry.list_devices()
    devices.clear()
    assert len(registry.list_devices()) == 2


@pytest.mark.asyncio
async def test_create_assigns_next_id_and_anchor_receipt() -> None:
    anchor = DeterministicLedgerAnchor(start_block=500)
    registry = DeviceRegistry(anchor=anchor, seed=SEED_DEVICES)

    device = await registry.create(_valid_input())

    assert device.id == len(SEED_DEVICES) + 1
    assert device.status == "Available"
    assert device.details == "Roadside"
    assert device.power_kw == 22.0
    assert device.on_chain.transaction_hash == DeterministicLedgerAnchor.transaction_hash_for(3, 1)
    assert device.on_chain.block_number == 501
    assert device.on_chain.timestamp_utc == "2024-01-01T00:00:00Z"
    assert device.on_chain.explorer_url.endswith(f"/tx/{device.on_chain.transaction_hash}")
    assert registry.list_devices()[-1] == device


@pytest.mark.asyncio
async def test_create_defaults_details_and_coerces_numeric_strings() -> None:
    registry = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=[])
    data = _valid_input(power="50")
    del data["details"]

    device = await registry.create(data)

    assert device.id == 1
    assert device.details == "Connected"
    assert device.power_kw == 50.0


@pytest.mark.asyncio
async def test_create_missing_manufacturer_is_rejected() -> None:
    anchor = DeterministicLedgerAnchor()
    registry = DeviceRegistry(anchor=anchor, seed=SEED_DEVICES)
    before = registry.list_devices()
    data = _valid_input()
    del data["manufacturer"]

    with pytest.raises(ValidationError) as exc_info:
        await registry.create(data)

    assert any(err["loc"] == ["manufacturer"] for err in exc_info.value.errors)
    assert registry.list_devices() == before
    assert anchor.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"power": "not-a-number"},
        {"power": math.nan},
        {"power": math.inf},
        {"location": {"latitude": 91, "longitude": 0, "zipCode": "00000"}},
        {"location": {"latitude": 0, "longitude": -180.5, "zipCode": "00000"}},
        {"location": {"latitude": "abc", "longitude": 0, "zipCode": "00000"}},
        {"name": ""},
        {"status": None},
    ],
)
async def test_create_invalid_values_are_rejected(overrides) -> None:
    registry = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=SEED_DEVICES)

    with pytest.raises(ValidationError):
        await registry.create(_valid_input(**overrides))

    assert len(registry) == 2


@pytest.mark.asyncio
async def test_create_rejects_non_object_body() -> None:
    registry = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=[])
    with pytest.raises(ValidationError):
        await registry.create([_valid_input()])


@pytest.mark.asyncio
async def test_anchor_failure_leaves_collection_unchanged() -> None:
    registry = DeviceRegistry(anchor=DeterministicLedgerAnchor(fail=True), seed=SEED_DEVICES)

    with pytest.raises(AnchorError) as exc_info:
        await registry.create(_valid_input())

    assert exc_info.value.device_id == 3
    assert [d.id for d in registry.list_devices()] == [1, 2]


@pytest.mark.asyncio
async def test_simulated_anchor_hashes_are_distinct_across_creates() -> None:
    registry = DeviceRegistry(anchor=SimulatedLedgerAnchor(failure_rate=0.0), seed=SEED_DEVICES)

    for _ in range(50):
        await registry.create(_valid_input())

    hashes = [d.on_chain.transaction_hash for d in registry.list_devices()]
    assert all(hashes)
    assert len(set(hashes)) == len(hashes)


class _SlowAnchor(DeterministicLedgerAnchor):
    async def anchor(self, device_id, device) -> AnchorResult:
        await asyncio.sleep(0.01)
        return await super().anchor(device_id, device)


@pytest.mark.asyncio
async def test_concurrent_creates_get_unique_ids() -> None:
    registry = DeviceRegistry(anchor=_SlowAnchor(), seed=SEED_DEVICES)

    created = await asyncio.gather(*(registry.create(_valid_input(name=f"C{i}")) for i in range(10)))

    ids = sorted(d.id for d in created)
    assert ids == list(range(3, 13))
    assert [d.id for d in registry.list_devices()] == list(range(1, 13))


def test_seed_is_not_shared_between_registries() -> None:
    seed = copy.deepcopy(SEED_DEVICES)
    a = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=seed)
    b = DeviceRegistry(anchor=DeterministicLedgerAnchor(), seed=seed)
    asyncio.run(a.create(_valid_input()))
    assert len(a) == 3
    assert len(b) == 2


def test_registry_built_outside_a_loop_serializes_creates_on_each_loop() -> None:
    registry = DeviceRegistry(anchor=_SlowAnchor(), seed=SEED_DEVICES)

    async def burst(prefix):
        return await asyncio.gather(*(registry.create(_valid_input(name=f"{prefix}{i}")) for i in range(3)))

    first = asyncio.run(burst("A"))
    second = asyncio.run(burst("B"))

    assert sorted(d.id for d in first) == [3, 4, 5]
    assert sorted(d.id for d in second) == [6, 7, 8]
