from .agent_service import (
    AgentService,
    LiveAgentService,
    MockAgentService,
    create_agent_service,
)
from .search_agent import SearchAgent
from .session import AgentSession, SessionMessage

__all__ = [
    "AgentService",
    "LiveAgentService",
    "MockAgentService",
    "create_agent_service",
    "SearchAgent",
    "AgentSession",
    "SessionMessage",
]
