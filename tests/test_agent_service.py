"""
Tests for the orchestrator stages, live and mock.
"""
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from agents.agent_service import (
    BOOTSTRAP_TASK,
    EXECUTION_FALLBACK,
    SEARCH_UNAVAILABLE_MARKER,
    LiveAgentService,
    MockAgentService,
    create_agent_service,
)
from core.types import DEFAULT_ANALYSIS, Analysis, AnalysisAction

pytestmark = pytest.mark.asyncio


def _service(invoker, client, **kwargs):
    return LiveAgentService(invoker=invoker, client_factory=lambda settings: client, **kwargs)


def _failing_factory(settings):
    raise ValueError("No API key configured")


# start_goal_agent

async def test_start_goal_parses_tasks(invoker, fake_llm, settings):
    client = fake_llm('["Research bikes", "Compare prices"]')

    tasks = await _service(invoker, client).start_goal_agent(settings, "Buy a bike")

    assert tasks == ["Research bikes", "Compare prices"]
    system = client.calls[0]["messages"][0]["content"]
    assert "Buy a bike" in system
    assert '"English"' in system


async def test_start_goal_uses_language_override(invoker, fake_llm, settings):
    client = fake_llm('["Tâche"]')

    await _service(invoker, client).start_goal_agent(settings, "Goal", "French")

    assert '"French"' in client.calls[0]["messages"][0]["content"]


async def test_start_goal_model_down_yields_no_tasks(invoker, fake_llm, settings):
    client = fake_llm(RuntimeError("down"))

    assert await _service(invoker, client).start_goal_agent(settings, "Goal") == []


async def test_start_goal_unexpected_failure_yields_bootstrap_task(invoker, settings):
    service = LiveAgentService(invoker=invoker, client_factory=_failing_factory)

    assert await service.start_goal_agent(settings, "Goal") == [BOOTSTRAP_TASK]


# analyze_task_agent

async def test_analyze_search(invoker, fake_llm, settings):
    client = fake_llm('{"action": "search", "arg": "bike prices 2026"}')

    analysis = await _service(invoker, client).analyze_task_agent(settings, "Goal", "Find prices")

    assert analysis == Analysis(AnalysisAction.SEARCH, "bike prices 2026")
    assert '["reason", "search"]' in client.calls[0]["messages"][0]["content"]


async def test_analyze_fenced_json(invoker, fake_llm, settings):
    client = fake_llm('```json\n{"action": "reason", "arg": "Think it through"}\n```')

    analysis = await _service(invoker, client).analyze_task_agent(settings, "Goal", "Plan")

    assert analysis == Analysis(AnalysisAction.REASON, "Think it through")


@pytest.mark.parametrize(
    "reply",
    ["Sure, I would search for that.", '{"action": "fly", "arg": "x"}', '["reason"]'],
)
async def test_analyze_unparsable_reply_yields_default(invoker, fake_llm, settings, reply):
    analysis = await _service(invoker, fake_llm(reply)).analyze_task_agent(settings, "Goal", "Task")

    assert analysis == DEFAULT_ANALYSIS


async def test_analyze_model_down_reasons(invoker, fake_llm, settings):
    client = fake_llm(RuntimeError("down"))

    analysis = await _service(invoker, client).analyze_task_agent(settings, "Goal", "Task")

    assert analysis == Analysis(AnalysisAction.REASON, "Analysis")


# execute_task_agent

async def test_execute_reason(invoker, fake_llm, settings):
    client = fake_llm("Here is the plan.")
    analysis = Analysis(AnalysisAction.REASON, "think")

    result = await _service(invoker, client).execute_task_agent(settings, "Goal", "Plan", analysis)

    assert result == "Here is the plan."


async def test_execute_search_without_credential_reports_marker(invoker, fake_llm, settings):
    client = fake_llm("Answer from reasoning.")
    analysis = Analysis(AnalysisAction.SEARCH, "bike prices")

    result = await _service(invoker, client).execute_task_agent(settings, "Goal", "Prices", analysis)

    assert result.startswith(SEARCH_UNAVAILABLE_MARKER)
    assert result.endswith("Answer from reasoning.")


async def test_execute_search_summarizes_results(invoker, fake_llm, settings):
    tavily = MagicMock()
    tavily.search.return_value = {
        "answer": "Around 1500 EUR.",
        "results": [
            {"title": "Bike shop", "content": "E-bikes from 1200 EUR"},
            {"title": "Empty", "content": ""},
        ],
    }
    client = fake_llm("Summary of prices.")
    analysis = Analysis(AnalysisAction.SEARCH, "latest e-bike prices")

    result = await _service(invoker, client, tavily_client=tavily).execute_task_agent(
        settings, "Buy a bike", "Prices", analysis
    )

    assert result.startswith("Summary of prices.\n\nSearch time: ")
    query = tavily.search.call_args.kwargs["query"]
    assert query == f"latest e-bike prices {datetime.now().year}"

    prompt = client.calls[0]["messages"][0]["content"]
    assert "Bike shop: E-bikes from 1200 EUR" in prompt
    assert "Around 1500 EUR." in prompt


async def test_execute_search_without_results(invoker, fake_llm, settings):
    tavily = MagicMock()
    tavily.search.return_value = {"results": []}
    client = fake_llm("unused")
    analysis = Analysis(AnalysisAction.SEARCH, "obscure topic")

    result = await _service(invoker, client, tavily_client=tavily).execute_task_agent(
        settings, "Goal", "Task", analysis
    )

    assert result.startswith("I don't have specific search results for this query.")
    assert client.calls == []


async def test_execute_search_error_is_reported(invoker, fake_llm, settings):
    tavily = MagicMock()
    tavily.search.side_effect = RuntimeError("quota exceeded")
    analysis = Analysis(AnalysisAction.SEARCH, "anything")

    result = await _service(invoker, fake_llm("x"), tavily_client=tavily).execute_task_agent(
        settings, "Goal", "Task", analysis
    )

    assert result.startswith("Error occurred during search.")


async def test_execute_model_down_yields_fallback_text(invoker, fake_llm, settings):
    client = fake_llm(RuntimeError("down"))
    analysis = Analysis(AnalysisAction.REASON, "think")

    result = await _service(invoker, client).execute_task_agent(settings, "Goal", "Task", analysis)

    assert result == EXECUTION_FALLBACK


async def test_execute_unexpected_failure_yields_fallback_text(invoker, settings):
    service = LiveAgentService(invoker=invoker, client_factory=_failing_factory)

    result = await service.execute_task_agent(settings, "Goal", "Task", DEFAULT_ANALYSIS)

    assert result == EXECUTION_FALLBACK


# create_tasks_agent

async def test_create_tasks_filters_completed(invoker, fake_llm, settings):
    client = fake_llm('["Task 1: Compare prices", "Task 2: Book test ride"]')

    tasks = await _service(invoker, client).create_tasks_agent(
        settings,
        "Buy a bike",
        ["Read reviews"],
        "Research bikes",
        "Found three models.",
        ["Research bikes", "Compare prices"],
    )

    assert tasks == ["Book test ride"]
    prompt = client.calls[0]["messages"][0]["content"]
    assert '["Read reviews"]' in prompt
    assert "Found three models." in prompt


async def test_create_tasks_nothing_left(invoker, fake_llm, settings):
    client = fake_llm("No new tasks needed.")

    tasks = await _service(invoker, client).create_tasks_agent(
        settings, "Goal", [], "Last", "Done", ["Last"]
    )

    assert tasks == []


async def test_create_tasks_unexpected_failure_yields_nothing(invoker, settings):
    service = LiveAgentService(invoker=invoker, client_factory=_failing_factory)

    assert await service.create_tasks_agent(settings, "Goal", [], "Last", "Done") == []


# Mock orchestrator and selection

async def test_mock_outputs(settings):
    service = MockAgentService()

    assert await service.start_goal_agent(settings, "Goal") == ["Task 1"]
    assert await service.analyze_task_agent(settings, "Goal", "Task 1") == Analysis(
        AnalysisAction.REASON, "Mock analysis"
    )
    assert await service.execute_task_agent(settings, "Goal", "Task 1", DEFAULT_ANALYSIS) == "Result: Task 1"
    assert await service.create_tasks_agent(settings, "Goal", [], "Task 1", "Result: Task 1") == ["Task 4"]


async def test_create_agent_service_selects_mock():
    assert isinstance(create_agent_service(mock_mode=True), MockAgentService)


async def test_create_agent_service_selects_live(invoker):
    service = create_agent_service(mock_mode=False, invoker=invoker, search_api_key=None)

    assert isinstance(service, LiveAgentService)
    assert service.invoker is invoker
    assert service.search_enabled is False


async def test_start_goal_retries_model_after_empty_reply(invoker, fake_llm, settings):
    client = fake_llm("", '["Real task"]')
    service = _service(invoker, client)

    first = await service.start_goal_agent(settings, "Goal")
    second = await service.start_goal_agent(settings, "Goal")

    assert first == []
    assert second == ["Real task"]
    assert len(client.calls) == 2


@pytest.mark.parametrize("action", ["Search", "SEARCH", " search "])
async def test_analyze_action_is_case_insensitive(invoker, fake_llm, settings, action):
    client = fake_llm('{"action": "%s", "arg": "bike prices"}' % action)

    analysis = await _service(invoker, client).analyze_task_agent(settings, "Goal", "Find prices")

    assert analysis == Analysis(AnalysisAction.SEARCH, "bike prices")
