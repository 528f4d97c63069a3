"""Claude AI client for parsing free-text check-in email replies."""

import json
from dataclasses import dataclass, asdict
from typing import Optional

import structlog
from anthropic import AsyncAnthropic, APIError

from api.config.settings import settings

logger = structlog.get_logger()

VALID_REPLY_STATUSES = {
    "hired_there",
    "hired_elsewhere",
    "interviewing",
    "offer",
    "rejected",
    "withdrew",
    "still_looking",
    "no_response",
    "unclear",
}

REPLY_PROMPT = """You are analyzing an email reply from a job candidate to determine their current employment status.

The candidate was introduced to: {company_name}

Return ONLY valid JSON with this exact structure (no markdown, no other text):
{{
  "status": "hired_there" | "hired_elsewhere" | "interviewing" | "offer" | "rejected" | "withdrew" | "still_looking" | "no_response" | "unclear",
  "company_mentioned": "company name or null",
  "is_introduced_company": true | false | null,
  "start_date_mentioned": "date or relative time, or null",
  "role_title_mentioned": "job title or null",
  "confidence": "high" | "medium" | "low",
  "summary": "1-2 sentence summary of the candidate's situation"
}}

Status definitions:
- "hired_there": hired at {company_name} (or an obvious variation of that name)
- "hired_elsewhere": hired at a different company
- "interviewing": still interviewing
- "offer": received an offer, not yet accepted
- "rejected": the company declined to move forward
- "withdrew": the candidate withdrew
- "still_looking": still searching, no significant update
- "no_response": never heard back from the company
- "unclear": cannot tell from the message

Candidate email reply:
\"\"\"
{reply}
\"\"\"
"""


@dataclass
class ParsedReply:
    """Structured reading of a candidate's free-text reply."""

    status: str = "unclear"
    company_mentioned: Optional[str] = None
    is_introduced_company: Optional[bool] = None
    start_date_mentioned: Optional[str] = None
    role_title_mentioned: Optional[str] = None
    confidence: str = "low"
    summary: Optional[str] = None
    parser: str = "keyword"

    def to_dict(self) -> dict:
        return asdict(self)


class ClaudeReplyParser:
    """Parses candidate replies with Claude."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize Claude client."""
        self.client = AsyncAnthropic(api_key=api_key or settings.ANTHROPIC_API_KEY)
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = 500

    async def parse_reply(self, reply: str, company_name: str) -> ParsedReply:
        """
        Interpret a free-text reply.

        Raises:
            ClaudeError: if the API call fails
        """
        prompt = REPLY_PROMPT.format(company_name=company_name, reply=reply)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.1,
                messages=[
                    {
                        "role": "user",
                        "content": prompt,
                    }
                ],
            )
        except APIError as e:
            logger.error("Claude API error during reply parsing", error=str(e))
            raise ClaudeError(f"Reply parsing failed: {str(e)}") from e

        raw_response = response.content[0].text
        result = self._parse_reply_response(raw_response)

        logger.info(
            "Reply parsing complete",
            status=result.status,
            confidence=result.confidence,
        )
        return result

    def _parse_reply_response(self, response: str) -> ParsedReply:
        """Parse Claude's JSON; anything malformed becomes an unclear reading."""
        try:
            data = json.loads(self._extract_json(response))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to parse reply response", error=str(e))
            return ParsedReply(summary="Unable to parse structured response", parser="claude")

        status = data.get("status")
        if status not in VALID_REPLY_STATUSES:
            status = "unclear"

        return ParsedReply(
            status=status,
            company_mentioned=data.get("company_mentioned"),
            is_introduced_company=data.get("is_introduced_company"),
            start_date_mentioned=data.get("start_date_mentioned"),
            role_title_mentioned=data.get("role_title_mentioned"),
            confidence=data.get("confidence") or "low",
            summary=data.get("summary"),
            parser="claude",
        )

    def _extract_json(self, text: str) -> str:
        """Extract a JSON object from a response that may contain other text."""
        start = text.find("{")
        end = text.rfind("}") + 1

        if start != -1 and end > start:
            return text[start:end]

        raise ValueError("No JSON found in response")


class ClaudeError(Exception):
    """Raised when Claude API calls fail."""

    pass
