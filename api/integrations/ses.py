"""SES integration for sending emails."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from api.config.settings import settings

logger = structlog.get_logger()

# Template directory
TEMPLATE_DIR = Path(__file__).parent.parent / "config" / "templates"

# Subject and copy per check-in number; numbers past the table reuse the last entry
CHECK_IN_MESSAGES = {
    1: {
        "subject": "Quick check-in: How's it going with {company}?",
        "greeting": "It's been about a month since we connected you with {company}. We wanted to check in!",
        "main_question": "Have you had a chance to interview with them?",
    },
    2: {
        "subject": "Following up: Any updates on {company}?",
        "greeting": "Hope you're doing well! It's been about 2 months since your introduction to {company}.",
        "main_question": "How has the process been going?",
    },
    3: {
        "subject": "90-day check-in: {company} opportunity",
        "greeting": "Just checking in. It's been about 3 months since we connected you with {company}.",
        "main_question": "What's the current status of this opportunity?",
    },
    4: {
        "subject": "6-month update request: {company}",
        "greeting": "It's been about 6 months since your introduction to {company}. We'd love a quick update!",
        "main_question": "Where did things land with this opportunity?",
    },
    5: {
        "subject": "Annual check-in: {company} connection",
        "greeting": "Time flies! It's been a year since we connected you with {company}.",
        "main_question": "We'd love to know how things worked out.",
    },
}


def format_money(cents: Optional[int]) -> str:
    """Render integer cents as dollars, e.g. 1800000 -> $18,000.00."""
    if cents is None:
        return "Unknown"
    return f"${cents / 100:,.2f}"


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%B %d, %Y") if value else "N/A"


class SESService:
    """Service for sending emails via AWS SES."""

    def __init__(self, from_email: Optional[str] = None, from_name: Optional[str] = None):
        """Initialize SES client.

        Args:
            from_email: Override sender email (defaults to settings.SES_FROM_EMAIL)
            from_name: Override sender name (defaults to settings.SES_FROM_NAME)
        """
        # Explicitly pass credentials if configured
        client_kwargs = {"region_name": settings.SES_REGION}
        if settings.SES_ACCESS_KEY_ID and settings.SES_SECRET_ACCESS_KEY:
            client_kwargs["aws_access_key_id"] = settings.SES_ACCESS_KEY_ID
            client_kwargs["aws_secret_access_key"] = settings.SES_SECRET_ACCESS_KEY

        self.client = boto3.client("ses", **client_kwargs)
        self.from_email = from_email or settings.SES_FROM_EMAIL
        self.from_name = from_name or settings.SES_FROM_NAME

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        reply_to: Optional[str] = None,
        cc: Optional[List[str]] = None,
    ) -> str:
        """Send an email via SES.

        Returns:
            SES message ID

        Raises:
            SESError: if SES rejects the message or is unreachable
        """
        source = f"{self.from_name} <{self.from_email}>"

        destination = {"ToAddresses": [to]}
        if cc:
            destination["CcAddresses"] = cc

        body = {"Html": {"Data": html_body, "Charset": "utf-8"}}
        if text_body:
            body["Text"] = {"Data": text_body, "Charset": "utf-8"}

        params = {
            "Source": source,
            "Destination": destination,
            "Message": {
                "Subject": {"Data": subject, "Charset": "utf-8"},
                "Body": body,
            },
        }
        if reply_to:
            params["ReplyToAddresses"] = [reply_to]

        try:
            # boto3 is blocking; keep the event loop free
            response = await asyncio.to_thread(self.client.send_email, **params)
        except (ClientError, BotoCoreError) as e:
            logger.error("SES send failed", error=str(e), to=to)
            raise SESError(f"Email send failed: {str(e)}") from e

        message_id = response["MessageId"]
        logger.info(
            "Email sent",
            message_id=message_id,
            to=to,
            subject=subject,
        )
        return message_id

    def _load_template(self, name: str) -> str:
        """Load a template file by name."""
        template_path = TEMPLATE_DIR / name
        if not template_path.exists():
            raise FileNotFoundError(f"Template not found: {template_path}")
        return template_path.read_text(encoding="utf-8")

    def _render_template(self, template: str, **kwargs) -> str:
        """Render a template with {{variable}} syntax."""
        result = template
        for key, value in kwargs.items():
            result = result.replace(f"{{{{{key}}}}}", str(value))
        return result

    def _render_pair(self, name: str, **template_vars) -> tuple[str, str]:
        html_body = self._render_template(self._load_template(f"{name}.html"), **template_vars)
        text_body = self._render_template(self._load_template(f"{name}.txt"), **template_vars)
        return html_body, text_body

    async def send_check_in_email(
        self,
        candidate_email: str,
        candidate_name: Optional[str],
        employer_company_name: str,
        job_title: Optional[str],
        check_in_number: int,
        response_url: str,
        introduction_date: Optional[datetime],
        expires_in_days: int = 14,
    ) -> str:
        """Send a check-in request with one link per response status."""
        copy = CHECK_IN_MESSAGES.get(check_in_number) or CHECK_IN_MESSAGES[max(CHECK_IN_MESSAGES)]
        first_name = candidate_name.split()[0] if candidate_name else "there"

        html_body, text_body = self._render_pair(
            "check_in_email",
            first_name=first_name,
            company_name=employer_company_name,
            job_title=job_title or "the position",
            greeting=copy["greeting"].format(company=employer_company_name),
            main_question=copy["main_question"],
            response_url=response_url,
            expires_in_days=expires_in_days,
            introduction_date=format_date(introduction_date),
        )

        return await self.send_email(
            to=candidate_email,
            subject=copy["subject"].format(company=employer_company_name),
            html_body=html_body,
            text_body=text_body,
        )

    async def send_circumvention_alert(
        self,
        candidate_name: Optional[str],
        employer_company_name: str,
        job_title: Optional[str],
        introduction_id: int,
        introduction_date: Optional[datetime],
        flag_id: int,
        check_in_number: Optional[int] = None,
        estimated_fee_owed: Optional[int] = None,
        source: str = "check-in response",
        to: Optional[str] = None,
    ) -> str:
        """Alert the admin mailbox that a candidate reported a hire."""
        dashboard_url = f"{settings.FRONTEND_URL.rstrip('/')}/admin/introductions/{introduction_id}"

        html_body, text_body = self._render_pair(
            "circumvention_alert",
            candidate_name=candidate_name or "A candidate",
            company_name=employer_company_name,
            job_title=job_title or "Not specified",
            introduction_date=format_date(introduction_date),
            check_in_number=check_in_number if check_in_number is not None else "N/A",
            estimated_fee=format_money(estimated_fee_owed),
            flag_id=flag_id,
            source=source,
            dashboard_url=dashboard_url,
        )

        return await self.send_email(
            to=to or settings.ADMIN_EMAIL,
            subject=f"ALERT: Candidate reports being hired at {employer_company_name}",
            html_body=html_body,
            text_body=text_body,
        )

    async def send_invoice(
        self,
        to: str,
        invoice_number: str,
        amount: int,
        due_date: datetime,
        employer_company_name: str,
        contact_name: Optional[str],
        candidate_name: Optional[str],
        job_title: Optional[str],
        custom_message: Optional[str] = None,
    ) -> str:
        """Send a placement-fee invoice to an employer, copying the admin mailbox."""
        formatted_amount = format_money(amount)

        html_body, text_body = self._render_pair(
            "invoice_email",
            invoice_number=invoice_number,
            contact_name=contact_name or "there",
            company_name=employer_company_name,
            candidate_name=candidate_name or "the candidate",
            job_title=job_title or "the position",
            amount=formatted_amount,
            due_date=format_date(due_date),
            custom_message=custom_message or "",
        )

        return await self.send_email(
            to=to,
            subject=f"Invoice {invoice_number}: Placement Fee for {candidate_name or 'candidate'} - {formatted_amount}",
            html_body=html_body,
            text_body=text_body,
            reply_to=settings.ADMIN_EMAIL,
            cc=[settings.ADMIN_EMAIL],
        )

    async def send_expiry_alert(
        self,
        introductions: List[dict],
        days_until_expiry: int,
        to: Optional[str] = None,
    ) -> str:
        """Digest for the admin mailbox of introductions whose protection ends soon.

        Each entry carries candidate_name, employer_company_name, job_title,
        introduced_at, protection_ends_at and last_check_in (a short summary).
        """
        count = len(introductions)
        text_rows = []
        html_rows = []
        for intro in introductions:
            candidate = intro.get("candidate_name") or "Candidate"
            company = intro["employer_company_name"]
            job_title = intro.get("job_title") or "N/A"
            ends = format_date(intro.get("protection_ends_at"))
            last_check_in = intro.get("last_check_in") or "No check-ins sent"
            text_rows.append(f"- {candidate} -> {company} ({job_title}), protection ends {ends}. Last check-in: {last_check_in}")
            html_rows.append(
                f"<tr><td><strong>{candidate}</strong><br>{company}</td><td>{job_title}</td>"
                f"<td>{format_date(intro.get('introduced_at'))}</td><td>{ends}</td><td>{last_check_in}</td></tr>"
            )

        template_vars = {
            "count": count,
            "plural": "" if count == 1 else "s",
            "days_until_expiry": days_until_expiry,
            "dashboard_url": f"{settings.FRONTEND_URL.rstrip('/')}/admin/introductions?filter=expiring",
        }
        html_body = self._render_template(
            self._load_template("expiry_alert.html"), rows="\n".join(html_rows), **template_vars
        )
        text_body = self._render_template(
            self._load_template("expiry_alert.txt"), rows="\n".join(text_rows), **template_vars
        )

        return await self.send_email(
            to=to or settings.ADMIN_EMAIL,
            subject=f"{count} introduction protection period{template_vars['plural']} expiring in {days_until_expiry} days",
            html_body=html_body,
            text_body=text_body,
        )

    async def send_payment_reminder(
        self,
        to: str,
        employer_company_name: str,
        contact_name: Optional[str],
        candidate_name: Optional[str],
        job_title: Optional[str],
        amount: int,
        due_date: datetime,
        days_overdue: int = 0,
    ) -> str:
        """Remind an employer that the remaining placement installment is due."""
        formatted_amount = format_money(amount)
        candidate = candidate_name or "your new hire"
        position = job_title or "the position"
        if days_overdue > 0:
            status_line = f"This payment is {days_overdue} day{'' if days_overdue == 1 else 's'} overdue."
            subject = f"OVERDUE: Remaining payment for {candidate} - {position}"
        else:
            status_line = "This payment is due today."
            subject = f"Remaining payment due: {candidate} - {position}"

        html_body, text_body = self._render_pair(
            "payment_reminder",
            contact_name=contact_name or "there",
            company_name=employer_company_name,
            candidate_name=candidate,
            job_title=position,
            amount=formatted_amount,
            due_date=format_date(due_date),
            status_line=status_line,
        )

        return await self.send_email(
            to=to,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
            reply_to=settings.ADMIN_EMAIL,
        )


class SESError(Exception):
    """Raised when SES operations fail."""
    pass
