"""
Session driver: runs the orchestrator stages until the work or the budget runs out.

    start -> queue
    while queue and loops < max_loops:
        task = queue.pop(0)
        analyze -> execute -> create tasks (appended to queue)
"""

import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from config import (
    DEFAULT_MAX_LOOPS_CUSTOM_API_KEY,
    DEFAULT_MAX_LOOPS_FREE,
)
from core.types import ModelSettings

from .agent_service import AgentService

logger = logging.getLogger(__name__)


class MessageType(Enum):
    GOAL = "goal"
    TASK = "task"
    ACTION = "action"
    RESULT = "result"
    SYSTEM = "system"


class SessionStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget_exhausted"
    STOPPED = "stopped"


@dataclass
class SessionMessage:
    type: MessageType
    value: str
    info: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "info": self.info,
            "timestamp": self.timestamp.isoformat(),
        }


def default_max_loops(settings: ModelSettings, fallback: int = DEFAULT_MAX_LOOPS_FREE) -> int:
    """Loop budget: users with their own API key get the larger budget."""
    if settings.has_custom_key:
        return DEFAULT_MAX_LOOPS_CUSTOM_API_KEY
    return fallback


class AgentSession:
    """One goal worked through the orchestrator, with its own task queue."""

    def __init__(
        self,
        service: AgentService,
        settings: ModelSettings,
        goal: str,
        max_loops: Optional[int] = None,
        language: Optional[str] = None,
        on_message: Optional[Callable[[SessionMessage], Any]] = None,
    ):
        self.service = service
        self.settings = settings
        self.goal = goal
        self.max_loops = max_loops if max_loops is not None else default_max_loops(settings)
        self.language = language or settings.language
        self.on_message = on_message

        self.tasks: Deque[str] = deque()
        self.completed_tasks: List[str] = []
        self.messages: List[SessionMessage] = []
        self.loop_count = 0
        self.status = SessionStatus.PENDING
        self._started = False
        self._stop_requested = False

    def stop(self) -> None:
        """Ask the session to halt before its next step."""
        self._stop_requested = True

    @property
    def finished(self) -> bool:
        return self.status in (
            SessionStatus.COMPLETED,
            SessionStatus.BUDGET_EXHAUSTED,
            SessionStatus.STOPPED,
        )

    async def run(self) -> List[SessionMessage]:
        """Run to completion, budget exhaustion or stop. Returns all messages."""
        while not self.finished:
            await self.step()
        return self.messages

    async def step(self) -> None:
        """Advance the session by one transition."""
        if self.finished:
            return
        if self._stop_requested:
            await self._finish(SessionStatus.STOPPED, "Agent stopped.")
            return

        if not self._started:
            await self._start()
            return

        if not self.tasks:
            await self._finish(SessionStatus.COMPLETED, "All tasks completed. Shutting down.")
            return
        if self.loop_count >= self.max_loops:
            await self._finish(
                SessionStatus.BUDGET_EXHAUSTED,
                f"Loop budget of {self.max_loops} reached. Shutting down.",
            )
            return

        await self._run_task(self.tasks.popleft())

    async def _start(self) -> None:
        self._started = True
        self.status = SessionStatus.RUNNING
        await self._emit(MessageType.GOAL, self.goal)
        tasks = await self.service.start_goal_agent(self.settings, self.goal, self.language)
        await self._enqueue(tasks)

    async def _run_task(self, task: str) -> None:
        self.loop_count += 1
        logger.info("Loop %d/%d: %s", self.loop_count, self.max_loops, task)

        analysis = await self.service.analyze_task_agent(self.settings, self.goal, task)
        await self._emit(MessageType.ACTION, analysis.arg, info=analysis.action.value)

        result = await self.service.execute_task_agent(
            self.settings, self.goal, task, analysis, self.language
        )
        self.completed_tasks.append(task)
        await self._emit(MessageType.RESULT, result, info=task)

        new_tasks = await self.service.create_tasks_agent(
            self.settings,
            self.goal,
            list(self.tasks),
            task,
            result,
            self.completed_tasks,
            self.language,
        )
        await self._enqueue(new_tasks)

    async def _enqueue(self, tasks: List[str]) -> None:
        for task in tasks:
            if task in self.tasks or task in self.completed_tasks:
                continue
            self.tasks.append(task)
            await self._emit(MessageType.TASK, task)

    async def _finish(self, status: SessionStatus, note: str) -> None:
        self.status = status
        await self._emit(MessageType.SYSTEM, note)

    async def _emit(self, kind: MessageType, value: str, info: Optional[str] = None) -> None:
        message = SessionMessage(kind, value, info)
        self.messages.append(message)
        if self.on_message is None:
            return
        try:
            result = self.on_message(message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Session message callback failed: %r", e)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal": self.goal,
            "status": self.status.value,
            "loop_count": self.loop_count,
            "max_loops": self.max_loops,
            "pending_tasks": list(self.tasks),
            "completed_tasks": list(self.completed_tasks),
            "messages": [m.to_dict() for m in self.messages],
        }
