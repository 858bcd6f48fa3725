"""Tests for measurement ingestion and the per-user read paths."""

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from app.exceptions.errors import (
    DeviceIdMismatchError,
    InvalidInputError,
    NotFoundError,
    RangeViolationError,
)
from app.models import IdempotencyKey, Measurement
from app.schemas.context_schemas import DeviceContext
from app.schemas.measurement_schemas import MeasurementCreate, MeasurementFilters
from app.services.measurement_service import MeasurementService

from conftest import make_device, make_user


def reading(device_id="ht-0001", heart_rate=72, spo2=98, **extra):
    return MeasurementCreate(deviceId=device_id, heartRate=heart_rate, spO2=spo2, **extra)


async def setup_device(session, **kwargs):
    user = await make_user(session)
    device = await make_device(session, user, **kwargs)
    return user, DeviceContext(device_id=device.device_id, user_id=user.id, name=device.name)


async def count_measurements(session):
    return (await session.execute(select(func.count(Measurement.id)))).scalar()


def test_ingest_stores_public_projection(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        stored = await MeasurementService(session).ingest(
            ctx, reading(timestamp=datetime(2025, 6, 15, 14, 30), quality="fair", confidence=0.9)
        )
        return stored, await count_measurements(session)

    stored, total = run_db(scenario)

    assert total == 1
    assert "user_id" not in stored
    assert stored["heart_rate"] == 72
    assert stored["spo2"] == 98
    assert stored["quality"] == "fair"
    assert stored["confidence"] == 0.9
    assert stored["timestamp"] == "2025-06-15T14:30:00.000Z"


def test_ingest_defaults(run_db, monkeypatch):
    monkeypatch.setattr(
        "app.services.measurement_service.utc_now", lambda: datetime(2025, 6, 15, 8, 0)
    )

    async def scenario(session):
        _, ctx = await setup_device(session)
        return await MeasurementService(session).ingest(ctx, reading())

    stored = run_db(scenario)

    assert stored["timestamp"] == "2025-06-15T08:00:00.000Z"
    assert stored["quality"] == "good"
    assert stored["confidence"] == 1.0


def test_ingest_normalizes_aware_timestamp(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        local = datetime(2025, 6, 15, 7, 30, tzinfo=dt_timezone.utc).astimezone(
            dt_timezone(-timedelta(hours=7))
        )
        return await MeasurementService(session).ingest(ctx, reading(timestamp=local))

    assert run_db(scenario)["timestamp"] == "2025-06-15T07:30:00.000Z"


@pytest.mark.parametrize("heart_rate,spo2", [(40, 98), (200, 98), (72, 70), (72, 100)])
def test_ingest_accepts_boundaries(run_db, heart_rate, spo2):
    async def scenario(session):
        _, ctx = await setup_device(session)
        return await MeasurementService(session).ingest(ctx, reading(heart_rate=heart_rate, spo2=spo2))

    stored = run_db(scenario)
    assert stored["heart_rate"] == heart_rate
    assert stored["spo2"] == spo2


@pytest.mark.parametrize("heart_rate,spo2,field", [
    (39, 98, "heart_rate"),
    (201, 98, "heart_rate"),
    (72, 69, "spo2"),
    (72, 101, "spo2"),
])
def test_ingest_rejects_out_of_range(run_db, heart_rate, spo2, field):
    async def scenario(session):
        _, ctx = await setup_device(session)
        with pytest.raises(RangeViolationError) as exc:
            await MeasurementService(session).ingest(ctx, reading(heart_rate=heart_rate, spo2=spo2))
        return exc.value, await count_measurements(session)

    error, total = run_db(scenario)
    assert error.field == field
    assert error.code.value == "RANGE_VIOLATION"
    assert total == 0


def test_ingest_rejects_bad_confidence(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        with pytest.raises(RangeViolationError):
            await MeasurementService(session).ingest(ctx, reading(confidence=1.5))

    run_db(scenario)


def test_ingest_device_mismatch(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        with pytest.raises(DeviceIdMismatchError):
            await MeasurementService(session).ingest(ctx, reading(device_id="someone-else"))
        return await count_measurements(session)

    assert run_db(scenario) == 0


@pytest.mark.parametrize("payload", [
    {"heartRate": 72, "spO2": 98},
    {"deviceId": "ht-0001", "spO2": 98},
    {"deviceId": "ht-0001", "heartRate": 72},
])
def test_ingest_requires_core_fields(run_db, payload):
    async def scenario(session):
        _, ctx = await setup_device(session)
        with pytest.raises(InvalidInputError):
            await MeasurementService(session).ingest(ctx, MeasurementCreate(**payload))

    run_db(scenario)


def test_ingest_idempotent_replay(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        service = MeasurementService(session)
        first = await service.ingest(ctx, reading(heart_rate=80), idempotency_key="retry-1")
        second = await service.ingest(ctx, reading(heart_rate=81), idempotency_key="retry-1")
        third = await service.ingest(ctx, reading(heart_rate=82), idempotency_key="retry-2")
        keys = (await session.execute(select(func.count(IdempotencyKey.id)))).scalar()
        return first, second, third, await count_measurements(session), keys

    first, second, third, total, keys = run_db(scenario)

    assert second["id"] == first["id"]
    assert second["heart_rate"] == 80
    assert third["id"] != first["id"]
    assert total == 2
    assert keys == 2



def test_idempotency_keys_are_scoped_per_device(run_db):
    async def scenario(session):
        user, wrist = await setup_device(session, device_id="wrist")
        await make_device(session, user, device_id="finger")
        finger = DeviceContext(device_id="finger", user_id=user.id)
        service = MeasurementService(session)

        first = await service.ingest(wrist, reading(device_id="wrist", heart_rate=70), idempotency_key="seq-1")
        second = await service.ingest(finger, reading(device_id="finger", heart_rate=120), idempotency_key="seq-1")
        return first, second, await count_measurements(session)

    first, second, total = run_db(scenario)

    assert total == 2
    assert second["id"] != first["id"]
    assert second["heart_rate"] == 120


def test_key_conflict_on_commit_replays_stored_reading(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        service = MeasurementService(session)
        stored = await service.ingest(ctx, reading(heart_rate=80), idempotency_key="retry-1")

        # Simulate a concurrent retry that checked for the key before it was committed
        lookup = service._find_replay
        calls = []

        async def racing_lookup(device, key):
            calls.append(key)
            if len(calls) == 1:
                return None, None
            return await lookup(device, key)

        service._find_replay = racing_lookup
        replayed = await service.ingest(ctx, reading(heart_rate=81), idempotency_key="retry-1")
        return stored, replayed, len(calls), await count_measurements(session)

    stored, replayed, lookups, total = run_db(scenario)

    assert lookups == 2
    assert replayed["id"] == stored["id"]
    assert replayed["heart_rate"] == 80
    assert total == 1

def test_list_measurements_paginates_newest_first(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session, timezone="America/Phoenix")
        service = MeasurementService(session)
        for hour in range(5):
            await service.ingest(ctx, reading(heart_rate=60 + hour, timestamp=datetime(2025, 6, 15, hour)))
        page1 = await service.list_measurements(ctx.user_id, MeasurementFilters(page=1, limit=2))
        page3 = await service.list_measurements(ctx.user_id, MeasurementFilters(page=3, limit=2))
        return page1, page3

    page1, page3 = run_db(scenario)

    assert [m["heart_rate"] for m in page1["measurements"]] == [64, 63]
    assert page1["pagination"] == {"total": 5, "page": 1, "limit": 2, "pages": 3}
    assert [m["heart_rate"] for m in page3["measurements"]] == [60]
    # Device timezone is used when the caller gives none
    assert page1["timezone"] == "America/Phoenix"
    assert page1["measurements"][0]["timestamp"] == "2025-06-14T21:00:00.000-07:00"
    assert page1["measurements"][0]["created_at"].endswith("-07:00")


def test_list_measurements_filters(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        service = MeasurementService(session)
        for day in (10, 12, 14):
            await service.ingest(ctx, reading(timestamp=datetime(2025, 6, day, 12)))
        filters = MeasurementFilters(
            start_date=datetime(2025, 6, 11),
            end_date=datetime(2025, 6, 13),
            timezone="UTC",
        )
        return await service.list_measurements(ctx.user_id, filters)

    page = run_db(scenario)

    assert page["pagination"]["total"] == 1
    assert page["measurements"][0]["timestamp"] == "2025-06-12T12:00:00.000+00:00"


def test_daily_measurements_uses_local_day(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        service = MeasurementService(session)
        # Phoenix day 2025-06-15 spans 07:00 UTC on the 15th to 06:59:59.999 on the 16th
        for ts in (
            datetime(2025, 6, 15, 6, 59),
            datetime(2025, 6, 15, 7, 0),
            datetime(2025, 6, 16, 6, 59, 59),
            datetime(2025, 6, 16, 7, 0),
        ):
            await service.ingest(ctx, reading(timestamp=ts))
        return await service.daily_measurements(ctx.user_id, "2025-06-15", "America/Phoenix")

    daily = run_db(scenario)

    assert daily["count"] == 2
    assert daily["timezone"] == "America/Phoenix"
    assert [m["timestamp"] for m in daily["measurements"]] == [
        "2025-06-15T00:00:00.000-07:00",
        "2025-06-15T23:59:59.000-07:00",
    ]


def test_daily_measurements_requires_date(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        with pytest.raises(InvalidInputError):
            await MeasurementService(session).daily_measurements(ctx.user_id, "", "UTC")

    run_db(scenario)


def test_device_measurements_checks_ownership(run_db):
    async def scenario(session):
        owner, ctx = await setup_device(session)
        intruder = await make_user(session, clerk_id="user_clerk_2")
        service = MeasurementService(session)
        await service.ingest(ctx, reading())

        owned = await service.device_measurements(owner.id, "ht-0001")
        with pytest.raises(NotFoundError):
            await service.device_measurements(intruder.id, "ht-0001")
        with pytest.raises(NotFoundError):
            await service.device_measurements(owner.id, "missing")
        return owned

    owned = run_db(scenario)

    assert len(owned) == 1
    assert owned[0]["device_id"] == "ht-0001"


def test_delete_for_user(run_db):
    async def scenario(session):
        _, ctx = await setup_device(session)
        service = MeasurementService(session)
        await service.ingest(ctx, reading(), idempotency_key="k1")
        await service.ingest(ctx, reading())
        deleted = await service.delete_for_user(ctx.user_id)
        keys = (await session.execute(select(func.count(IdempotencyKey.id)))).scalar()
        return deleted, await count_measurements(session), keys

    assert run_db(scenario) == (2, 0, 0)
