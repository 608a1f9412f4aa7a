import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.chain import LLMChain
from core.invoke import ResilientInvoker
from core.types import ModelSettings

from .prompts import SUMMARIZE_SEARCH_PROMPT

logger = logging.getLogger(__name__)

TIME_SENSITIVE_PATTERN = re.compile(r"current|latest|now|today|recent|election|president", re.IGNORECASE)


def search_time_context(now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now()
    return {
        "full_date": now.strftime("%A, %B %d, %Y"),
        "year": now.year,
        "readable_time": now.strftime("%Y-%m-%d %H:%M:%S"),
    }


class SearchAgent:
    """
    Search collaborator for the "search" action.

    Runs a Tavily web search for the query and has the model summarize the
    result snippets with the session goal in mind.

    Capabilities:
    - Web search via Tavily API
    - Query augmentation with the current year for time-sensitive queries
    - Snippet summarization through the resilient invoker
    """

    def __init__(
        self,
        settings: ModelSettings,
        goal: str,
        api_key: Optional[str],
        invoker: ResilientInvoker,
        llm_client: Any,
        tavily_client: Optional[Any] = None,
        max_search_results: int = 5,
        search_depth: str = "basic",
        now: Callable[[], datetime] = datetime.now,
    ):
        if not api_key and tavily_client is None:
            raise ValueError("TAVILY_API_KEY is required for web search")
        if tavily_client is None:
            from tavily import TavilyClient
            tavily_client = TavilyClient(api_key=api_key)

        self.settings = settings
        self.goal = goal
        self.invoker = invoker
        self.llm_client = llm_client
        self.tavily_client = tavily_client
        self.max_search_results = max_search_results
        self.search_depth = search_depth
        self.now = now

    async def search(self, query: str) -> str:
        """Summarized search results for query. Never raises."""
        context = search_time_context(self.now())
        try:
            augmented_query = query
            if TIME_SENSITIVE_PATTERN.search(query):
                augmented_query = f"{query} {context['year']}"
                logger.info("Augmented query with time context: %r", augmented_query)

            default_response = (
                "I don't have specific search results for this query. "
                f"The current date is {context['full_date']} and the year is {context['year']}."
            )

            results = await self._web_search(augmented_query)
            snippets = self._snippets(results)
            if not snippets:
                logger.warning("No search results for %r", augmented_query)
                return default_response

            summary = await self._summarize(augmented_query, snippets)
            if not summary:
                return default_response
            return f"{summary}\n\nSearch time: {context['readable_time']}"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in search tool: %r", e)
            return (
                f"Error occurred during search. The current date is {context['full_date']} "
                f"and the year is {context['year']}. Please try again with a different query."
            )

    async def _web_search(self, query: str) -> Dict[str, Any]:
        """Perform a web search using Tavily API."""
        # TavilyClient is synchronous
        response = await asyncio.to_thread(
            self.tavily_client.search,
            query=query,
            search_depth=self.search_depth,
            max_results=self.max_search_results,
        )
        return response or {}

    @staticmethod
    def _snippets(response: Dict[str, Any]) -> List[str]:
        snippets = []
        answer = response.get("answer")
        if answer:
            snippets.append(answer)
        for item in response.get("results", []):
            content = item.get("content", "")
            if not content:
                continue
            title = item.get("title", "")
            snippets.append(f"{title}: {content}" if title else content)
        return snippets

    async def _summarize(self, query: str, snippets: List[str]) -> str:
        chain = LLMChain(SUMMARIZE_SEARCH_PROMPT, self.llm_client, self.settings)
        return await self.invoker.safe_invoke(
            chain,
            {"goal": self.goal, "query": query, "snippets": snippets},
            "",
        )
