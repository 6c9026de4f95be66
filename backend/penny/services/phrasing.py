"""Intervention phrasing: canned templates plus an optional text generator.

Every intervention is first composed from a template. If a text generator
is configured, it may rephrase the message body within a timeout; any
failure (timeout, HTTP error, empty or oversized reply) keeps the template.
The title always comes from the template.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from penny.config import settings
from penny.models.intervention import InterventionType, PhrasingSource

logger = logging.getLogger("penny.controller")

MAX_MESSAGE_LENGTH = 280

TITLES = {
    InterventionType.drift_alert: "Portfolio Drift Detected",
    InterventionType.rebalance_suggestion: "Time to Rebalance?",
    InterventionType.contribution_reminder: "Investment Day!",
    InterventionType.goal_check: "Weekly Check-in",
    InterventionType.milestone: "Milestone Reached",
}

PROMPTS = {
    InterventionType.drift_alert: "Acknowledge the drift without being alarming and suggest a portfolio review.",
    InterventionType.rebalance_suggestion: "Explain calmly that the drift is large enough to consider rebalancing.",
    InterventionType.contribution_reminder: "Encourage the monthly contribution. Small steps add up.",
    InterventionType.goal_check: "Invite a two-minute review of progress toward the goal.",
    InterventionType.milestone: "Celebrate the milestone warmly and briefly.",
}


@dataclass(frozen=True)
class ComposedMessage:
    title: str
    message: str
    source: PhrasingSource


def template_message(intervention_type: InterventionType, context: dict) -> str:
    if intervention_type in (InterventionType.drift_alert, InterventionType.rebalance_suggestion):
        details = "; ".join(context.get("details") or []) or "your mix has moved from target"
        drift = context.get("drift", 0)
        if intervention_type == InterventionType.rebalance_suggestion:
            return (
                f"Your allocation is {drift:.1f} points off target ({details}). "
                "It may be worth rebalancing back toward your plan."
            )
        return f"Your allocation has drifted {drift:.1f} points ({details}). Take a look when you have a minute."

    if intervention_type == InterventionType.contribution_reminder:
        target = context.get("monthly_target", 0)
        return f"Time for your ${target:,.0f} monthly contribution. Small steps lead to big gains!"

    if intervention_type == InterventionType.goal_check:
        value = context.get("portfolio_value", 0)
        days_left = context.get("days_to_target")
        if days_left is not None:
            return (
                f"Your portfolio is at ${value:,.0f} with {days_left} days to your target date. "
                "Take 2 min to review your progress!"
            )
        return f"Your portfolio is at ${value:,.0f}. Take 2 min to review your progress!"

    if intervention_type == InterventionType.milestone:
        milestone = context.get("milestone", 0)
        return f"Your portfolio just passed ${milestone:,.0f}. That's real progress!"

    raise ValueError(f"No template for {intervention_type}")


class TextGenerator(ABC):
    """Optional natural-language collaborator."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...


class HttpTextGenerator(TextGenerator):
    """POSTs {"prompt": ...} and reads {"text": ...} back."""

    def __init__(self, url: str, *, transport: httpx.AsyncBaseTransport | None = None):
        self._url = url
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.post(self._url, json={"prompt": prompt})
        resp.raise_for_status()
        return str(resp.json().get("text", ""))


class MessageComposer:
    def __init__(
        self,
        generator: TextGenerator | None = None,
        *,
        timeout: float = 3.0,
    ):
        self._generator = generator
        self._timeout = timeout

    async def compose(self, intervention_type: InterventionType, context: dict) -> ComposedMessage:
        title = TITLES[intervention_type]
        message = template_message(intervention_type, context)
        if self._generator is None:
            return ComposedMessage(title, message, PhrasingSource.template)

        prompt = (
            "You are a friendly investment coach writing a short push notification "
            f"(max {MAX_MESSAGE_LENGTH} characters). {PROMPTS[intervention_type]}\n"
            f"Facts: {message}\n"
            "Respond with the message only."
        )
        try:
            text = await asyncio.wait_for(self._generator.generate(prompt), timeout=self._timeout)
        except Exception:
            logger.warning("phrasing failed type=%s, using template", intervention_type.value, exc_info=True)
            return ComposedMessage(title, message, PhrasingSource.template)

        text = text.strip()
        if not text or len(text) > MAX_MESSAGE_LENGTH:
            logger.warning("phrasing rejected type=%s length=%d, using template", intervention_type.value, len(text))
            return ComposedMessage(title, message, PhrasingSource.template)
        return ComposedMessage(title, text, PhrasingSource.generated)


def build_composer() -> MessageComposer:
    generator = HttpTextGenerator(settings.phrasing_url) if settings.phrasing_url else None
    return MessageComposer(generator, timeout=settings.phrasing_timeout_seconds)
