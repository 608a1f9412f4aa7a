from unittest.mock import AsyncMock

import pytest

from agents.agent_service import MockAgentService
from agents.session import (
    AgentSession,
    MessageType,
    SessionStatus,
    default_max_loops,
)
from core.types import Analysis, AnalysisAction, ModelSettings

pytestmark = pytest.mark.asyncio


async def test_mock_session_runs_to_completion(settings):
    session = AgentSession(MockAgentService(), settings, "Plan a trip", max_loops=10)

    messages = await session.run()

    assert session.status is SessionStatus.COMPLETED
    assert session.loop_count == 2
    assert session.completed_tasks == ["Task 1", "Task 4"]
    assert [m.type for m in messages] == [
        MessageType.GOAL,
        MessageType.TASK,
        MessageType.ACTION,
        MessageType.RESULT,
        MessageType.TASK,
        MessageType.ACTION,
        MessageType.RESULT,
        MessageType.SYSTEM,
    ]
    assert messages[3].value == "Result: Task 1"
    assert messages[3].info == "Task 1"
    assert messages[2].info == "reason"


async def test_budget_exhaustion(settings):
    session = AgentSession(MockAgentService(), settings, "Plan a trip", max_loops=1)

    await session.run()

    assert session.status is SessionStatus.BUDGET_EXHAUSTED
    assert session.loop_count == 1
    assert list(session.tasks) == ["Task 4"]


async def test_stop_before_next_step(settings):
    session = AgentSession(MockAgentService(), settings, "Plan a trip")

    await session.step()
    session.stop()
    await session.run()

    assert session.status is SessionStatus.STOPPED
    assert session.loop_count == 0
    assert session.messages[-1].value == "Agent stopped."


async def test_duplicate_tasks_are_not_queued(settings):
    service = MockAgentService()
    service.start_goal_agent = AsyncMock(return_value=["A", "A", "B"])
    service.create_tasks_agent = AsyncMock(return_value=["A", "B", "C"])
    session = AgentSession(service, settings, "Goal", max_loops=10)

    await session.run()

    assert session.completed_tasks == ["A", "B", "C"]


async def test_create_tasks_receives_queue_and_completed(settings):
    service = MockAgentService()
    service.start_goal_agent = AsyncMock(return_value=["A", "B"])
    service.create_tasks_agent = AsyncMock(return_value=[])
    session = AgentSession(service, settings, "Goal", max_loops=1)

    await session.run()

    args = service.create_tasks_agent.await_args.args
    assert args[2] == ["B"]
    assert args[3] == "A"
    assert args[4] == "Result: A"
    assert args[5] == ["A"]


async def test_async_and_sync_callbacks(settings):
    seen = []

    async def on_message(message):
        seen.append(message.type)

    session = AgentSession(MockAgentService(), settings, "Goal", max_loops=1, on_message=on_message)
    await session.run()

    assert seen == [m.type for m in session.messages]

    sync_seen = []
    session = AgentSession(MockAgentService(), settings, "Goal", max_loops=1, on_message=sync_seen.append)
    await session.run()

    assert len(sync_seen) == len(session.messages)


async def test_failing_callback_does_not_stop_session(settings):
    def on_message(message):
        raise RuntimeError("display broke")

    session = AgentSession(MockAgentService(), settings, "Goal", max_loops=5, on_message=on_message)
    await session.run()

    assert session.status is SessionStatus.COMPLETED


async def test_search_action_is_reported(settings):
    service = MockAgentService()
    service.analyze_task_agent = AsyncMock(return_value=Analysis(AnalysisAction.SEARCH, "query"))
    session = AgentSession(service, settings, "Goal", max_loops=1)

    await session.run()

    action = next(m for m in session.messages if m.type is MessageType.ACTION)
    assert action.info == "search"
    assert action.value == "query"


async def test_default_loop_budget():
    assert default_max_loops(ModelSettings()) == 4
    assert default_max_loops(ModelSettings(api_key="sk-user")) == 50
    assert AgentSession(MockAgentService(), ModelSettings(api_key="sk-user"), "Goal").max_loops == 50


async def test_to_dict(settings):
    session = AgentSession(MockAgentService(), settings, "Goal", max_loops=1)
    await session.run()

    data = session.to_dict()
    assert data["status"] == "budget_exhausted"
    assert data["completed_tasks"] == ["Task 1"]
    assert data["messages"][0] == {
        "type": "goal",
        "value": "Goal",
        "info": None,
        "timestamp": session.messages[0].timestamp.isoformat(),
    }
