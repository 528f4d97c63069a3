"""Full check-in cycle: schedule, send, candidate answers, flag lands in the ledger."""

import json
from datetime import timedelta

import pytest

from api.models import (
    CheckIn,
    CheckInStatus,
    CircumventionFlag,
    FlagStatus,
    IntroductionStatus,
    RiskLevel,
)
from api.services import circumvention_ledger as ledger
from api.services.check_in_scheduler import CheckInScheduler
from api.services.risk_classifier import CheckInResponseService
from tests.conftest import NOW


@pytest.mark.asyncio
async def test_hire_report_becomes_invoice(db_session, email_service, make_introduction):
    # Introduced today, with check-ins at 7 and 30 days
    introduction = make_introduction(days_ago=0)
    scheduler = CheckInScheduler(db_session, email_service, schedule_days=[7, 30])

    too_early = await scheduler.run(NOW + timedelta(days=6))
    assert too_early.created == 0

    result = await scheduler.run(NOW + timedelta(days=8))
    assert (result.created, result.sent) == (1, 1)

    check_in = db_session.query(CheckIn).one()
    assert check_in.status == CheckInStatus.SENT.value
    assert check_in.scheduled_for == NOW + timedelta(days=7)
    token_url = email_service.send_check_in_email.await_args.kwargs["response_url"]
    assert token_url.endswith(check_in.response_token)

    responses = CheckInResponseService(db_session, email_service)
    outcome = await responses.record_response(
        check_in, {"status": "hired_there", "roleTitle": "Controls Lead"}, now=NOW + timedelta(days=9)
    )

    assert outcome.risk_level == RiskLevel.HIGH
    assert introduction.status == IntroductionStatus.CONFIRMED.value

    flag = db_session.query(CircumventionFlag).one()
    assert flag.status == FlagStatus.OPEN.value
    assert flag.estimated_fee_owed == 1_800_000
    assert json.loads(flag.evidence)["parsedResponse"]["roleTitle"] == "Controls Lead"

    # Confirmed introductions get no further check-ins
    later = await scheduler.run(NOW + timedelta(days=31))
    assert later.introductions_processed == 0
    assert db_session.query(CheckIn).count() == 1

    stats = ledger.get_stats(db_session, NOW + timedelta(days=10))
    assert stats["action_required"] == 1
    assert stats["revenue"]["potential"] == "1800000"

    ledger.update_flag(db_session, flag, {"status": "INVESTIGATING"})
    await ledger.send_invoice(db_session, email_service, flag, now=NOW + timedelta(days=12))

    stats = ledger.get_stats(db_session, NOW + timedelta(days=12))
    assert stats["revenue"]["pending"] == "1800000"
    assert stats["action_required"] == 0


@pytest.mark.asyncio
async def test_silent_candidate_moves_to_next_check_in(db_session, email_service, make_introduction):
    introduction = make_introduction(days_ago=0)
    scheduler = CheckInScheduler(db_session, email_service, schedule_days=[7, 30])

    await scheduler.run(NOW + timedelta(days=7))
    expired = await scheduler.run(NOW + timedelta(days=22))

    assert expired.expired == 1
    assert expired.created == 0

    second = await scheduler.run(NOW + timedelta(days=30))

    assert second.created == 1
    check_ins = (
        db_session.query(CheckIn)
        .filter(CheckIn.introduction_id == introduction.id)
        .order_by(CheckIn.check_in_number)
        .all()
    )
    assert [c.status for c in check_ins] == [CheckInStatus.NO_RESPONSE.value, CheckInStatus.SENT.value]
    assert check_ins[0].risk_level == RiskLevel.LOW.value
    assert db_session.query(CircumventionFlag).count() == 0

    done = await scheduler.run(NOW + timedelta(days=400))
    assert done.created == 0
    assert done.expired == 1
