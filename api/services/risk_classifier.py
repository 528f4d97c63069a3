"""Check-in response classification and its side effects.

A response arrives either as a button click from the check-in email
(``{"status": "hired_there", ...}``) or as free text an admin pastes from an
email reply. Both end up as one of the ``ResponseStatus`` values plus a risk
level. Risk policy:

- hired at the introduced employer with no placement on record: HIGH
- offer pending or still interviewing: MEDIUM
- anything else, including silence until the token expires: LOW
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy.orm import Session

from api.config.settings import settings
from api.integrations.claude import ClaudeError, ClaudeReplyParser, ParsedReply
from api.integrations.ses import SESError, SESService
from api.middleware.error_handler import ValidationAPIError
from api.models import (
    Activity,
    CheckIn,
    CheckInStatus,
    CircumventionFlag,
    DetectionMethod,
    FlagStatus,
    Introduction,
    IntroductionStatus,
    PlacementStatus,
    ResponseStatus,
    ResponseType,
    RiskLevel,
    utcnow,
)
from api.services.fees import calculate_fee_percentage, calculate_placement_fee, estimate_salary
from api.services.introductions import change_introduction_status
from api.services.notifications import log_email
from api.services.response_tokens import is_token_expired
from api.services.transitions import can_transition, ensure_transition

logger = structlog.get_logger()

UNCLEAR = "unclear"
NO_RESPONSE_REASON = "No response before token expiry"
ADMIN_NO_RESPONSE_REASON = "Marked as no response by admin"

# status -> (risk level, reason template)
RISK_POLICY: dict[str, tuple[RiskLevel, str]] = {
    ResponseStatus.HIRED_THERE.value: (
        RiskLevel.HIGH,
        "Candidate reported being hired at {employer} - potential fee circumvention",
    ),
    ResponseStatus.OFFER.value: (
        RiskLevel.MEDIUM,
        "Candidate received offer from {employer} - monitor for hire",
    ),
    ResponseStatus.INTERVIEWING.value: (
        RiskLevel.MEDIUM,
        "Candidate actively interviewing with {employer}",
    ),
    ResponseStatus.HIRED_ELSEWHERE.value: (
        RiskLevel.LOW,
        "Candidate was hired elsewhere - no fee applicable",
    ),
    ResponseStatus.REJECTED.value: (
        RiskLevel.LOW,
        "{employer} did not move forward with candidate",
    ),
    ResponseStatus.WITHDREW.value: (
        RiskLevel.LOW,
        "Candidate withdrew from consideration",
    ),
    ResponseStatus.NO_RESPONSE.value: (
        RiskLevel.LOW,
        "Candidate never heard back from {employer}",
    ),
    ResponseStatus.STILL_LOOKING.value: (
        RiskLevel.LOW,
        "Candidate still looking / waiting to hear back",
    ),
    UNCLEAR: (
        RiskLevel.MEDIUM,
        "Could not determine status from reply - manual review required",
    ),
}

HIRE_PATTERN = re.compile(
    r"\b(hired|got the (job|position|role)|accepted (the|their|an|a) (offer|position|role)|"
    r"start(ed|ing)? (work|on|next|at|there)|joined|now work(ing)? (at|for|there)|"
    r"work(ing)? there now|my first day|onboard(ed|ing))\b",
    re.IGNORECASE,
)
ELSEWHERE_PATTERN = re.compile(
    r"\b(elsewhere|another company|different company|other company|somewhere else)\b",
    re.IGNORECASE,
)

# Checked in order after the hire rule; first match wins
FREE_TEXT_RULES: list[tuple[str, re.Pattern]] = [
    (ResponseStatus.REJECTED.value, re.compile(
        r"\b(rejected|not (moving|move|to move) forward|didn'?t move forward|turned me down|"
        r"went with (another|a different) candidate|not selected|unfortunately they)\b",
        re.IGNORECASE,
    )),
    (ResponseStatus.WITHDREW.value, re.compile(
        r"\b(withdr[ae]w|withdrawn|no longer interested|pulled out|turned (it|them) down|"
        r"declined (the|their) offer)\b",
        re.IGNORECASE,
    )),
    (ResponseStatus.NO_RESPONSE.value, re.compile(
        r"\b(never heard back|haven'?t heard|no response|ghosted|no reply)\b",
        re.IGNORECASE,
    )),
    (ResponseStatus.OFFER.value, re.compile(r"\b(offer|offered)\b", re.IGNORECASE)),
    (ResponseStatus.INTERVIEWING.value, re.compile(r"\binterview", re.IGNORECASE)),
    (ResponseStatus.STILL_LOOKING.value, re.compile(
        r"\b(still looking|still searching|nothing yet|no updates?|job hunting)\b",
        re.IGNORECASE,
    )),
]


@dataclass
class Classification:
    """Outcome of classifying one check-in response."""

    response_type: str
    response_parsed: dict[str, Any]
    risk_level: RiskLevel
    risk_reason: str

    @property
    def status(self) -> str:
        return self.response_parsed.get("status", UNCLEAR)

    @property
    def flagged_for_review(self) -> bool:
        return self.risk_level in (RiskLevel.HIGH, RiskLevel.MEDIUM)


def _mentions_employer(text: str, employer_name: str) -> bool:
    if not employer_name:
        return False
    name = employer_name.lower()
    lowered = text.lower()
    if name in lowered:
        return True
    # "Acme" should match a reply about "Acme Corp" and vice versa
    first_word = name.split()[0]
    return len(first_word) > 2 and re.search(rf"\b{re.escape(first_word)}\b", lowered) is not None


def interpret_free_text(text: str, employer_name: str) -> ParsedReply:
    """Keyword reading of a free-text reply, used when no AI parser is configured."""
    if HIRE_PATTERN.search(text):
        if ELSEWHERE_PATTERN.search(text):
            return ParsedReply(
                status=ResponseStatus.HIRED_ELSEWHERE.value,
                is_introduced_company=False,
                confidence="medium",
            )
        if _mentions_employer(text, employer_name):
            return ParsedReply(
                status=ResponseStatus.HIRED_THERE.value,
                company_mentioned=employer_name,
                is_introduced_company=True,
                confidence="medium",
            )
        # A hire without a named company is ambiguous
        return ParsedReply(status=UNCLEAR, confidence="low")

    for status, pattern in FREE_TEXT_RULES:
        if pattern.search(text):
            return ParsedReply(status=status, confidence="medium")

    return ParsedReply(status=UNCLEAR, confidence="low")


def classify_status(
    status: str,
    employer_name: str,
    has_placement: bool = False,
) -> tuple[RiskLevel, str]:
    """Risk level and reason for a reported status."""
    risk_level, template = RISK_POLICY.get(status, RISK_POLICY[UNCLEAR])
    reason = template.format(employer=employer_name or "the employer")

    if status == ResponseStatus.HIRED_THERE.value and has_placement:
        return RiskLevel.LOW, f"Candidate reported being hired at {employer_name} - placement on record"

    return risk_level, reason


def classify_response(
    check_in: CheckIn,
    raw_response: Mapping[str, Any] | str,
    employer_name: Optional[str] = None,
    has_placement: Optional[bool] = None,
    parsed_reply: Optional[ParsedReply] = None,
    now: Optional[datetime] = None,
) -> Classification:
    """
    Classify a check-in response without touching the database.

    Args:
        check_in: The check-in being answered (used for employer/placement context)
        raw_response: Button payload mapping, or free-text reply
        employer_name: Overrides the introduction's employer name
        has_placement: Overrides the placement lookup
        parsed_reply: Pre-parsed free text (from the AI parser)
        now: Submission time recorded in the parsed response

    Raises:
        ValidationAPIError: if a button payload carries an unknown status
    """
    introduction = check_in.introduction
    if employer_name is None:
        employer_name = introduction.employer.company_name if introduction and introduction.employer else ""
    if has_placement is None:
        has_placement = _has_active_placement(introduction)
    submitted_at = (now or utcnow()).isoformat()

    if isinstance(raw_response, str):
        reply = parsed_reply or interpret_free_text(raw_response, employer_name)
        parsed = reply.to_dict()
        parsed["submittedAt"] = submitted_at
        risk_level, reason = classify_status(reply.status, employer_name, has_placement)
        return Classification(
            response_type=ResponseType.FREE_TEXT.value,
            response_parsed=parsed,
            risk_level=risk_level,
            risk_reason=reason,
        )

    status = raw_response.get("status")
    valid_statuses = [s.value for s in ResponseStatus]
    if status not in valid_statuses:
        raise ValidationAPIError(
            "Invalid status",
            field="status",
            details={"validStatuses": valid_statuses},
        )

    parsed = {
        "status": status,
        "message": raw_response.get("message") or None,
        "submittedAt": submitted_at,
    }
    if status == ResponseStatus.HIRED_THERE.value:
        if raw_response.get("startDate"):
            parsed["startDate"] = raw_response["startDate"]
        if raw_response.get("roleTitle"):
            parsed["roleTitle"] = raw_response["roleTitle"]

    risk_level, reason = classify_status(status, employer_name, has_placement)
    return Classification(
        response_type=ResponseType.BUTTON_CLICK.value,
        response_parsed=parsed,
        risk_level=risk_level,
        risk_reason=reason,
    )


def classify_expired(check_in: CheckIn) -> Classification:
    """Silence is not evidence: an expired, unanswered check-in is always LOW."""
    return Classification(
        response_type=ResponseType.NO_RESPONSE.value,
        response_parsed={"status": ResponseStatus.NO_RESPONSE.value, "reason": "token_expired"},
        risk_level=RiskLevel.LOW,
        risk_reason=NO_RESPONSE_REASON,
    )


def _has_active_placement(introduction: Optional[Introduction]) -> bool:
    if introduction is None or introduction.placement is None:
        return False
    return introduction.placement.status != PlacementStatus.CANCELLED


def expire_stale_check_ins(db: Session, now: Optional[datetime] = None) -> list[CheckIn]:
    """
    Close every sent, unanswered check-in whose token has expired.

    Commits once for the whole sweep.
    """
    now = now or utcnow()
    stale = (
        db.query(CheckIn)
        .filter(
            CheckIn.status == CheckInStatus.SENT.value,
            CheckIn.responded_at.is_(None),
            CheckIn.response_token_expiry.isnot(None),
            CheckIn.response_token_expiry <= now,
        )
        .all()
    )

    for check_in in stale:
        result = classify_expired(check_in)
        check_in.status = ensure_transition("CheckIn", check_in.status, CheckInStatus.NO_RESPONSE)
        check_in.responded_at = now
        check_in.response_type = result.response_type
        check_in.response_parsed = json.dumps(result.response_parsed)
        check_in.risk_level = result.risk_level.value
        check_in.risk_reason = result.risk_reason
        check_in.flagged_for_review = False

    if stale:
        db.commit()
        logger.info("Expired stale check-ins", count=len(stale))
    return stale


class CheckInResponseService:
    """Applies classified responses to check-ins, flags and introductions."""

    def __init__(
        self,
        db: Session,
        email: Optional[SESService] = None,
        reply_parser: Optional[ClaudeReplyParser] = None,
    ):
        self.db = db
        self.email = email
        self.reply_parser = reply_parser

    async def record_response(
        self,
        check_in: CheckIn,
        payload: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Classification:
        """
        Record a candidate's button-click response (token path).

        Raises:
            ValidationAPIError: already responded, token expired, or bad status
        """
        now = now or utcnow()

        if check_in.status == CheckInStatus.RESPONDED:
            raise ValidationAPIError("You have already submitted a response for this check-in")
        if check_in.status == CheckInStatus.NO_RESPONSE or is_token_expired(check_in.response_token_expiry, now):
            raise ValidationAPIError("Token expired")

        result = classify_response(check_in, payload, now=now)
        check_in.status = ensure_transition("CheckIn", check_in.status, CheckInStatus.RESPONDED)
        self._apply(check_in, result, json.dumps(dict(payload)), now)

        flag = None
        if result.risk_level == RiskLevel.HIGH:
            flag = self._raise_flag(check_in, result, DetectionMethod.CHECKIN_RESPONSE, now)

        self.db.commit()

        logger.info(
            "Check-in response recorded",
            check_in_id=check_in.id,
            status=result.status,
            risk_level=result.risk_level.value,
        )

        if flag is not None:
            await self._send_alert(check_in, flag, source="check-in response")
        return result

    async def record_email_reply(
        self,
        check_in: CheckIn,
        email_content: str,
        now: Optional[datetime] = None,
    ) -> tuple[Classification, Optional[CircumventionFlag]]:
        """
        Classify a free-text email reply pasted by an admin.

        Unlike the token path this may reclassify an already answered
        check-in; the original response time is kept.
        """
        now = now or utcnow()
        text = email_content.strip()
        if len(text) < 10:
            raise ValidationAPIError("Email content is too short to parse", field="emailContent")
        if check_in.status == CheckInStatus.SCHEDULED:
            raise ValidationAPIError("Check-in has not been sent yet")

        introduction = check_in.introduction
        employer_name = introduction.employer.company_name

        parsed_reply = None
        if self.reply_parser is not None:
            try:
                parsed_reply = await self.reply_parser.parse_reply(text, employer_name)
            except ClaudeError as e:
                logger.warning("AI reply parsing failed, using keyword rules", error=str(e))

        result = classify_response(check_in, text, parsed_reply=parsed_reply, now=now)

        if check_in.status == CheckInStatus.SENT:
            check_in.status = ensure_transition("CheckIn", check_in.status, CheckInStatus.RESPONDED)
        self._apply(check_in, result, text, check_in.responded_at or now)

        flag = None
        if result.risk_level == RiskLevel.HIGH:
            flag = self._raise_flag(check_in, result, DetectionMethod.EMAIL_REPLY, now)

        self.db.commit()

        logger.info(
            "Email reply parsed",
            check_in_id=check_in.id,
            status=result.status,
            risk_level=result.risk_level.value,
            parser=result.response_parsed.get("parser"),
        )

        if flag is not None:
            await self._send_alert(check_in, flag, source="email reply")
        return result, flag

    def apply_review(
        self,
        check_in: CheckIn,
        changes: Mapping[str, Any],
        reviewer_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CheckIn:
        """
        Admin override of review fields.

        ``changes`` keys: review_notes (appended), mark_reviewed,
        flagged_for_review, risk_level, response_type.
        """
        now = now or utcnow()

        notes = changes.get("review_notes")
        if notes:
            stamp = now.strftime("%Y-%m-%d %H:%M")
            entry = f"[{stamp}] {notes}"
            check_in.review_notes = f"{check_in.review_notes}\n{entry}" if check_in.review_notes else entry

        if changes.get("mark_reviewed"):
            check_in.reviewed_at = now
            check_in.reviewed_by = reviewer_id

        if changes.get("flagged_for_review") is not None:
            check_in.flagged_for_review = bool(changes["flagged_for_review"])

        if changes.get("risk_level") is not None:
            check_in.risk_level = RiskLevel(changes["risk_level"]).value

        response_type = changes.get("response_type")
        if response_type is not None:
            check_in.response_type = ResponseType(response_type).value
            if response_type == ResponseType.NO_RESPONSE and check_in.responded_at is None:
                if check_in.status != CheckInStatus.NO_RESPONSE:
                    check_in.status = ensure_transition(
                        "CheckIn", check_in.status, CheckInStatus.NO_RESPONSE
                    )
                check_in.responded_at = now
                check_in.risk_level = RiskLevel.LOW.value
                check_in.risk_reason = ADMIN_NO_RESPONSE_REASON

        self.db.add(Activity(
            action="check_in_reviewed",
            introduction_id=check_in.introduction_id,
            user_id=reviewer_id,
            details=json.dumps({
                "check_in_id": check_in.id,
                "changes": {k: v for k, v in changes.items() if v is not None},
            }, default=str),
        ))
        self.db.commit()

        logger.info("Check-in reviewed", check_in_id=check_in.id, reviewer_id=reviewer_id)
        return check_in

    def _apply(self, check_in: CheckIn, result: Classification, raw: str, responded_at: datetime) -> None:
        check_in.responded_at = responded_at
        check_in.response_type = result.response_type
        check_in.response_raw = raw
        check_in.response_parsed = json.dumps(result.response_parsed)
        check_in.risk_level = result.risk_level.value
        check_in.risk_reason = result.risk_reason
        check_in.flagged_for_review = result.flagged_for_review

        self.db.add(Activity(
            action="check_in_responded",
            introduction_id=check_in.introduction_id,
            details=json.dumps({
                "check_in_id": check_in.id,
                "status": result.status,
                "risk_level": result.risk_level.value,
            }),
        ))

    def _raise_flag(
        self,
        check_in: CheckIn,
        result: Classification,
        detection_method: DetectionMethod,
        now: datetime,
    ) -> CircumventionFlag:
        """Create, or refresh, the open flag for this introduction and detection method."""
        introduction = check_in.introduction
        job = introduction.job

        salary = estimate_salary(job.salary_min, job.salary_max) if job else None
        level = job.experience_level if job else None
        if salary:
            fee = calculate_placement_fee(salary, level)
            fee_percentage, fee_owed = fee.fee_percentage, fee.placement_fee
        else:
            fee_percentage, fee_owed = round(calculate_fee_percentage(level) * 100, 2), None

        evidence = json.dumps({
            "checkInId": check_in.id,
            "checkInNumber": check_in.check_in_number,
            "candidateResponse": result.status,
            "parsedResponse": result.response_parsed,
            "reportedAt": now.isoformat(),
        })

        flag = (
            self.db.query(CircumventionFlag)
            .filter(
                CircumventionFlag.introduction_id == introduction.id,
                CircumventionFlag.detection_method == detection_method.value,
                CircumventionFlag.status.in_([FlagStatus.OPEN.value, FlagStatus.INVESTIGATING.value]),
            )
            .first()
        )

        if flag is None:
            flag = CircumventionFlag(
                introduction_id=introduction.id,
                employer_id=introduction.employer_id,
                detection_method=detection_method.value,
                status=FlagStatus.OPEN.value,
                detected_at=now,
            )
            self.db.add(flag)
            action = "flag_created"
        else:
            action = "flag_updated"

        flag.evidence = evidence
        flag.estimated_salary = salary
        flag.fee_percentage = fee_percentage
        flag.estimated_fee_owed = fee_owed
        self.db.flush()

        if can_transition("Introduction", introduction.status, IntroductionStatus.CONFIRMED):
            change_introduction_status(
                self.db,
                introduction,
                IntroductionStatus.CONFIRMED,
                reason=f"candidate reported hire ({detection_method.value})",
                now=now,
            )

        self.db.add(Activity(
            action=action,
            introduction_id=introduction.id,
            details=json.dumps({"flag_id": flag.id, "detection_method": detection_method.value}),
        ))

        logger.warning(
            "Possible fee circumvention",
            introduction_id=introduction.id,
            employer_id=introduction.employer_id,
            flag_id=flag.id,
            estimated_fee_owed=fee_owed,
        )
        return flag

    async def _send_alert(self, check_in: CheckIn, flag: CircumventionFlag, source: str) -> None:
        """Email the admin mailbox. Failures are logged, the response stands."""
        if self.email is None:
            return

        introduction = check_in.introduction
        try:
            message_id = await self.email.send_circumvention_alert(
                candidate_name=introduction.candidate.name,
                employer_company_name=introduction.employer.company_name,
                job_title=introduction.job.title if introduction.job else None,
                introduction_id=introduction.id,
                introduction_date=introduction.introduced_at,
                flag_id=flag.id,
                check_in_number=check_in.check_in_number,
                estimated_fee_owed=flag.estimated_fee_owed,
                source=source,
            )
        except SESError as e:
            logger.error("Circumvention alert failed", flag_id=flag.id, error=str(e))
            log_email(
                self.db,
                "circumvention_alert",
                to_email=settings.ADMIN_EMAIL,
                introduction_id=introduction.id,
                check_in_id=check_in.id,
                error=str(e),
            )
        else:
            log_email(
                self.db,
                "circumvention_alert",
                to_email=settings.ADMIN_EMAIL,
                introduction_id=introduction.id,
                check_in_id=check_in.id,
                message_id=message_id,
            )
        self.db.commit()
