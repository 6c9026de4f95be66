"""Phrasing tests: templates, generator success, fallback on every failure mode."""

import asyncio

import httpx
import pytest

from penny.models.intervention import InterventionType, PhrasingSource
from penny.services.phrasing import (
    TITLES,
    HttpTextGenerator,
    MessageComposer,
    TextGenerator,
    template_message,
)

DRIFT_CONTEXT = {"drift": 12.0, "details": ["equity is overweight by 12.0%"]}


class StaticGenerator(TextGenerator):
    def __init__(self, text: str):
        self.text = text
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


class SlowGenerator(TextGenerator):
    async def generate(self, prompt: str) -> str:
        await asyncio.sleep(5)
        return "too late"


class BrokenGenerator(TextGenerator):
    async def generate(self, prompt: str) -> str:
        raise ConnectionError("down")


def test_every_type_has_a_template():
    contexts = {
        InterventionType.drift_alert: DRIFT_CONTEXT,
        InterventionType.rebalance_suggestion: {"drift": 25.0, "details": []},
        InterventionType.contribution_reminder: {"monthly_target": 500.0},
        InterventionType.goal_check: {"portfolio_value": 12345.0, "days_to_target": None},
        InterventionType.milestone: {"milestone": 10000.0},
    }
    for intervention_type in InterventionType:
        assert TITLES[intervention_type]
        assert template_message(intervention_type, contexts[intervention_type])


def test_template_mentions_numbers():
    assert "12.0 points" in template_message(InterventionType.drift_alert, DRIFT_CONTEXT)
    assert "equity is overweight" in template_message(InterventionType.drift_alert, DRIFT_CONTEXT)
    assert "$500" in template_message(InterventionType.contribution_reminder, {"monthly_target": 500})
    assert "$10,000" in template_message(InterventionType.milestone, {"milestone": 10000})
    assert "21 days" in template_message(
        InterventionType.goal_check, {"portfolio_value": 5000, "days_to_target": 21}
    )


@pytest.mark.asyncio
async def test_no_generator_uses_template():
    composed = await MessageComposer().compose(InterventionType.drift_alert, DRIFT_CONTEXT)
    assert composed.source == PhrasingSource.template
    assert composed.title == "Portfolio Drift Detected"


@pytest.mark.asyncio
async def test_generated_message_used():
    generator = StaticGenerator("  Your mix wandered a bit. Worth a quick look?  ")
    composed = await MessageComposer(generator).compose(InterventionType.drift_alert, DRIFT_CONTEXT)
    assert composed.source == PhrasingSource.generated
    assert composed.message == "Your mix wandered a bit. Worth a quick look?"
    assert composed.title == "Portfolio Drift Detected"
    assert "equity is overweight" in generator.prompts[0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "generator",
    [SlowGenerator(), BrokenGenerator(), StaticGenerator(""), StaticGenerator("x" * 500)],
)
async def test_fallback_to_template(generator):
    composer = MessageComposer(generator, timeout=0.05)
    composed = await composer.compose(InterventionType.drift_alert, DRIFT_CONTEXT)
    assert composed.source == PhrasingSource.template
    assert composed.message == template_message(InterventionType.drift_alert, DRIFT_CONTEXT)


@pytest.mark.asyncio
async def test_http_generator():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/phrase"
        return httpx.Response(200, json={"text": "Nice and short."})

    generator = HttpTextGenerator("http://phrasing.test/phrase", transport=httpx.MockTransport(handler))
    assert await generator.generate("prompt") == "Nice and short."


@pytest.mark.asyncio
async def test_http_generator_error_falls_back():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    composer = MessageComposer(HttpTextGenerator("http://phrasing.test/phrase", transport=transport))
    composed = await composer.compose(InterventionType.milestone, {"milestone": 5000})
    assert composed.source == PhrasingSource.template
