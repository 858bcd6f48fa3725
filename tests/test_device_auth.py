"""Tests for device API key authentication."""

import pytest

from app.exceptions.errors import UnauthorizedError
from app.middlewares.device_auth import authenticate_device, hash_api_key
from app.schemas.device_schemas import DeviceUpdate
from app.services.device_service import DeviceService

from conftest import make_device, make_user


def test_authenticate_device(run_db):
    async def scenario(session):
        user = await make_user(session)
        device = await make_device(session, user, api_key_hash=hash_api_key("secret-key"))
        context = await authenticate_device(session, "secret-key")
        return user.id, context, device.last_seen

    user_id, context, last_seen = run_db(scenario)

    assert context.device_id == "ht-0001"
    assert context.user_id == user_id
    assert last_seen is not None


@pytest.mark.parametrize("api_key", [None, "", "wrong-key"])
def test_authenticate_device_rejects_bad_keys(run_db, api_key):
    async def scenario(session):
        user = await make_user(session)
        await make_device(session, user, api_key_hash=hash_api_key("secret-key"))
        with pytest.raises(UnauthorizedError):
            await authenticate_device(session, api_key)

    run_db(scenario)


def test_authenticate_inactive_device(run_db):
    async def scenario(session):
        user = await make_user(session)
        await make_device(session, user, api_key_hash=hash_api_key("secret-key"), status="inactive")
        with pytest.raises(UnauthorizedError):
            await authenticate_device(session, "secret-key")

    run_db(scenario)


def test_hash_api_key_is_sha256_hex():
    digest = hash_api_key("abc")
    assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_deactivated_device_is_refused(run_db):
    async def scenario(session):
        user = await make_user(session)
        await make_device(session, user, api_key_hash=hash_api_key("secret-key"))
        await authenticate_device(session, "secret-key")

        await DeviceService(session).update_device(user.id, "ht-0001", DeviceUpdate(status="inactive"))
        with pytest.raises(UnauthorizedError):
            await authenticate_device(session, "secret-key")

    run_db(scenario)
