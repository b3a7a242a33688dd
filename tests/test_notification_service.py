"""Tests for qadash.services.notification_service."""

import pytest

from qadash.core.exceptions import NotFoundError, ValidationError
from qadash.services.notification_service import NotificationService

from conftest import USER_ID


class TestNotificationService:

    @pytest.mark.asyncio
    async def test_notify_and_list_newest_first(self, gateway):
        service = NotificationService(gateway, USER_ID)
        for i in range(12):
            await service.notify(f"n{i}", "body")

        listed = await service.list_notifications()

        assert len(listed) == 10
        assert listed[0]["title"] == "n11"
        assert all(n["read"] is False for n in listed)

    @pytest.mark.asyncio
    async def test_unknown_type_falls_back_to_info(self, gateway):
        created = await NotificationService(gateway, USER_ID).notify("t", type="urgent")
        assert created["type"] == "info"

    @pytest.mark.asyncio
    async def test_other_users_not_listed(self, gateway):
        await NotificationService(gateway, "someone-else").notify("not mine")
        assert await NotificationService(gateway, USER_ID).list_notifications() == []

    @pytest.mark.asyncio
    async def test_mark_read(self, gateway):
        service = NotificationService(gateway, USER_ID)
        created = await service.notify("t")
        updated = await service.mark_read(created["id"])
        assert updated["read"] is True

    @pytest.mark.asyncio
    async def test_mark_read_missing_raises(self, gateway):
        with pytest.raises(NotFoundError):
            await NotificationService(gateway, USER_ID).mark_read("missing")

    @pytest.mark.asyncio
    async def test_non_positive_limit_rejected(self, gateway):
        with pytest.raises(ValidationError):
            await NotificationService(gateway, USER_ID).list_notifications(limit=0)

    @pytest.mark.asyncio
    async def test_write_failure_returns_none(self, faulty_gateway):
        faulty_gateway.fail_on.add(("insert", "notifications"))
        assert await NotificationService(faulty_gateway, USER_ID).notify("t") is None
