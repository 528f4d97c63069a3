"""Tests for the background processor pieces."""

import json
import pytest

from api.models import CheckIn, CheckInStatus
from processor.heartbeat import HeartbeatWriter
from processor.main import ProcessorService
from processor.scheduler import Scheduler


class TestScheduler:
    @pytest.mark.asyncio
    async def test_pass_uses_its_own_session(self, database, db_session, email_service, introduction):
        scheduler = Scheduler(database, email=email_service, interval=60)

        result = await scheduler.check_for_work()

        assert result.sent == 1
        db_session.expire_all()
        assert db_session.query(CheckIn).one().status == CheckInStatus.SENT.value

        status = scheduler.get_status()
        assert status["interval"] == 60
        assert status["last_result"]["sent"] == 1


class TestHeartbeat:
    def test_write_merges_status(self, tmp_path):
        path = tmp_path / "heartbeat"
        writer = HeartbeatWriter(status_callback=lambda: {"scheduler": {"running": True}}, file_path=str(path))

        data = writer.write()

        on_disk = json.loads(path.read_text())
        assert on_disk == data
        assert on_disk["status"] == "running"
        assert on_disk["scheduler"] == {"running": True}


class TestReadiness:
    @pytest.mark.asyncio
    async def test_stale_until_first_pass(self, database, email_service, introduction):
        service = ProcessorService(database, email=email_service)

        before = await service.health_server.ready_handler(None)
        assert before.status == 503
        assert json.loads(before.text)["checks"] == {"database": "ok", "scheduler": "stale"}

        await service.scheduler.check_for_work()

        after = await service.health_server.ready_handler(None)
        assert after.status == 200
        assert json.loads(after.text)["status"] == "ready"

    @pytest.mark.asyncio
    async def test_liveness_includes_scheduler_status(self, database, email_service):
        service = ProcessorService(database, email=email_service)

        response = await service.health_server.health_handler(None)

        body = json.loads(response.text)
        assert body["status"] == "ok"
        assert body["details"]["scheduler"]["running"] is False
