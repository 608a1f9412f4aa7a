"""
Task orchestrator: the four stages of an autonomous agent session.

    start_goal_agent    goal -> initial tasks
    analyze_task_agent  task -> Analysis (reason or search)
    execute_task_agent  task + Analysis -> result text
    create_tasks_agent  last task + result -> follow-up tasks

Each stage is stateless: the caller owns the goal, the task queue and the
completed tasks, and passes them in on every call. No stage raises; each one
degrades to a fixed default instead.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

from core.chain import LLMChain, PromptTemplate
from core.invoke import ResilientInvoker
from core.llm import create_llm_client
from core.types import (
    AVAILABLE_ACTIONS,
    DEFAULT_ANALYSIS,
    Analysis,
    AnalysisAction,
    ModelSettings,
)
from core.utils import extract_tasks

from .prompts import (
    ANALYZE_TASK_PROMPT,
    CREATE_TASKS_PROMPT,
    EXECUTE_TASK_PROMPT,
    START_GOAL_PROMPT,
)
from .search_agent import SearchAgent

logger = logging.getLogger(__name__)

BOOTSTRAP_TASK = "Analyze the goal and break it down into steps"
ANALYSIS_DEFAULT_REPLY = '{"action":"reason","arg":"Analysis"}'
EXECUTION_FALLBACK = "Unable to complete the task due to technical issues. Please try a different approach."
SEARCH_UNAVAILABLE_MARKER = "`ERROR: Failed to search as no TAVILY_API_KEY is provided in ENV.`"


class AgentService(ABC):
    """Interface shared by the live and mock orchestrators."""

    @abstractmethod
    async def start_goal_agent(
        self,
        settings: ModelSettings,
        goal: str,
        language: Optional[str] = None,
    ) -> List[str]:
        """Initial task list for a goal."""
        pass

    @abstractmethod
    async def analyze_task_agent(
        self,
        settings: ModelSettings,
        goal: str,
        task: str,
    ) -> Analysis:
        """Decide whether a task is executed by reasoning or by searching."""
        pass

    @abstractmethod
    async def execute_task_agent(
        self,
        settings: ModelSettings,
        goal: str,
        task: str,
        analysis: Analysis,
        language: Optional[str] = None,
    ) -> str:
        """Result text for a task."""
        pass

    @abstractmethod
    async def create_tasks_agent(
        self,
        settings: ModelSettings,
        goal: str,
        tasks: Sequence[str],
        last_task: str,
        result: str,
        completed_tasks: Optional[Sequence[str]] = None,
        language: Optional[str] = None,
    ) -> List[str]:
        """Follow-up tasks given the last task and its result."""
        pass


class LiveAgentService(AgentService):
    """Orchestrator backed by the configured LLM and search providers."""

    def __init__(
        self,
        invoker: ResilientInvoker,
        client_factory: Callable[[ModelSettings], Any] = create_llm_client,
        search_api_key: Optional[str] = None,
        tavily_client: Optional[Any] = None,
    ):
        self.invoker = invoker
        self.client_factory = client_factory
        self.search_api_key = search_api_key
        self.tavily_client = tavily_client

    @property
    def search_enabled(self) -> bool:
        return bool(self.search_api_key) or self.tavily_client is not None

    def _chain(self, prompt: PromptTemplate, settings: ModelSettings) -> LLMChain:
        return LLMChain(prompt, self.client_factory(settings), settings)

    async def start_goal_agent(self, settings, goal, language=None):
        language = language or settings.language
        try:
            logger.info("Starting goal agent for goal=%r language=%s", goal, language)
            completion = await self.invoker.safe_invoke(
                self._chain(START_GOAL_PROMPT, settings),
                {"goal": goal, "customLanguage": language},
                "[]",
            )
            logger.debug("Goal agent completion: %s", completion)
            return extract_tasks(completion, [])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in start_goal_agent: %r", e)
            return [BOOTSTRAP_TASK]

    async def analyze_task_agent(self, settings, goal, task):
        try:
            logger.info("Analyzing task %r", task)
            completion = await self.invoker.safe_invoke(
                self._chain(ANALYZE_TASK_PROMPT, settings),
                {"goal": goal, "actions": AVAILABLE_ACTIONS, "task": task},
                ANALYSIS_DEFAULT_REPLY,
            )
            logger.debug("Analysis completion: %s", completion)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in analyze_task_agent: %r", e)
            return DEFAULT_ANALYSIS

        try:
            return Analysis.from_json(completion)
        except (ValueError, TypeError) as e:
            logger.error("Error parsing analysis: %s", e)
            return DEFAULT_ANALYSIS

    async def execute_task_agent(self, settings, goal, task, analysis, language=None):
        language = language or settings.language
        try:
            logger.info("Executing task %r with action=%s", task, analysis.action.value)
            is_search = analysis.action == AnalysisAction.SEARCH

            if is_search and self.search_enabled:
                return await self._search_agent(settings, goal).search(analysis.arg)

            completion = await self.invoker.safe_invoke(
                self._chain(EXECUTE_TASK_PROMPT, settings),
                {"goal": goal, "task": task, "customLanguage": language},
                EXECUTION_FALLBACK,
            )

            if is_search:
                return f"{SEARCH_UNAVAILABLE_MARKER} \n\n{completion}"
            return completion
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in execute_task_agent: %r", e)
            return EXECUTION_FALLBACK

    async def create_tasks_agent(
        self,
        settings,
        goal,
        tasks,
        last_task,
        result,
        completed_tasks=None,
        language=None,
    ):
        language = language or settings.language
        try:
            logger.info(
                "Creating tasks: pending=%d completed=%d last=%r",
                len(tasks), len(completed_tasks or []), last_task,
            )
            completion = await self.invoker.safe_invoke(
                self._chain(CREATE_TASKS_PROMPT, settings),
                {
                    "goal": goal,
                    "tasks": list(tasks),
                    "lastTask": last_task,
                    "result": result,
                    "customLanguage": language,
                },
                "[]",
            )
            logger.debug("Create tasks completion: %s", completion)
            return extract_tasks(completion, list(completed_tasks or []))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in create_tasks_agent: %r", e)
            return []

    def _search_agent(self, settings: ModelSettings, goal: str) -> SearchAgent:
        return SearchAgent(
            settings=settings,
            goal=goal,
            api_key=self.search_api_key,
            invoker=self.invoker,
            llm_client=self.client_factory(settings),
            tavily_client=self.tavily_client,
        )


class MockAgentService(AgentService):
    """Canned outputs with no model or network access."""

    async def start_goal_agent(self, settings, goal, language=None):
        return ["Task 1"]

    async def analyze_task_agent(self, settings, goal, task):
        return Analysis(action=AnalysisAction.REASON, arg="Mock analysis")

    async def execute_task_agent(self, settings, goal, task, analysis, language=None):
        return "Result: " + task

    async def create_tasks_agent(
        self,
        settings,
        goal,
        tasks,
        last_task,
        result,
        completed_tasks=None,
        language=None,
    ):
        return ["Task 4"]


def create_agent_service(
    mock_mode: Optional[bool] = None,
    invoker: Optional[ResilientInvoker] = None,
    **kwargs: Any,
) -> AgentService:
    """
    Build the orchestrator selected by the mock-mode flag.

    Args:
        mock_mode: Use canned outputs. Defaults to AGENT_MOCK_MODE.
        invoker: Resilient invoker for the live service. Defaults to one over
            the process-wide response cache.
        **kwargs: Passed to LiveAgentService.
    """
    from config import config

    if mock_mode is None:
        mock_mode = config.mock_mode
    if mock_mode:
        logger.info("Using mock agent service")
        return MockAgentService()

    if invoker is None:
        from storage.cache import get_response_cache
        invoker = ResilientInvoker(
            cache=get_response_cache(),
            max_retries=config.max_retries,
            initial_delay=config.retry_initial_delay,
        )
    kwargs.setdefault("search_api_key", config.tavily_api_key)
    return LiveAgentService(invoker=invoker, **kwargs)
