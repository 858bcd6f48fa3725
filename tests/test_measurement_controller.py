"""Tests for response shaping and error mapping in the controllers."""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from app.api.v1.controllers.device_controller import DeviceController
from app.api.v1.controllers.measurement_controller import MeasurementController
from app.exceptions.errors import UpstreamFailureError
from app.models import Measurement
from app.schemas.context_schemas import UserContext

from conftest import make_device, make_user


class BrokenSession:
    """Session whose every query fails at the driver."""

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_weekly_summary_zero_fill(run_db, monkeypatch):
    monkeypatch.setattr(
        "app.api.v1.controllers.measurement_controller.utc_now", lambda: datetime(2025, 6, 20, 12)
    )

    async def scenario(session):
        user = await make_user(session)
        return await MeasurementController.get_weekly_summary(session, UserContext(user_id=user.id))

    response = run_db(scenario)

    assert response["success"] is True
    summary = response["data"]["summary"]
    assert summary["total_measurements"] == 0
    assert summary["average_heart_rate"] == 0
    assert summary["date_range"] == {"start": "2025-06-13", "end": "2025-06-20"}


def test_weekly_summary_rounds_averages(run_db, monkeypatch):
    monkeypatch.setattr(
        "app.services.aggregation_service.utc_now", lambda: datetime(2025, 6, 20, 12)
    )

    async def scenario(session):
        user = await make_user(session)
        await make_device(session, user)
        for heart_rate in (60, 61, 61):
            session.add(Measurement(user_id=user.id, device_id="ht-0001", heart_rate=heart_rate,
                                    spo2=97, timestamp=datetime(2025, 6, 19, 8),
                                    quality="good", confidence=1.0))
        await session.commit()
        return await MeasurementController.get_weekly_summary(session, UserContext(user_id=user.id))

    summary = run_db(scenario)["data"]["summary"]

    assert summary["average_heart_rate"] == 60.7
    assert summary["total_measurements"] == 3


def test_all_time_stats_localizes_timestamps(run_db):
    async def scenario(session):
        user = await make_user(session)
        await make_device(session, user, timezone="America/Phoenix")
        session.add(Measurement(user_id=user.id, device_id="ht-0001", heart_rate=70, spo2=97,
                                timestamp=datetime(2025, 12, 13, 1, 11, 55),
                                quality="good", confidence=1.0))
        await session.commit()
        return await MeasurementController.get_all_time_stats(session, UserContext(user_id=user.id))

    data = run_db(scenario)["data"]

    assert data["timezone"] == "America/Phoenix"
    assert data["stats"]["first_measurement"] == "2025-12-12T18:11:55.000-07:00"
    assert data["stats"]["heart_rate"]["highest_recorded"] == {
        "value": 70,
        "timestamp": "2025-12-12T18:11:55.000-07:00",
    }


def test_database_failure_maps_to_upstream_failure():
    user = UserContext(user_id="u1")

    with pytest.raises(UpstreamFailureError) as exc:
        asyncio.run(MeasurementController.get_daily_aggregates(BrokenSession(), user, 7))

    assert exc.value.status_code == 502
    assert exc.value.code.value == "UPSTREAM_FAILURE"


def test_device_listing_failure_maps_to_upstream_failure():
    with pytest.raises(UpstreamFailureError):
        asyncio.run(DeviceController.list_devices(BrokenSession(), UserContext(user_id="u1")))
