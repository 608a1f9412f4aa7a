"""
Core building blocks of the task orchestrator:

- Types: ModelSettings, Analysis, CacheEntry, InvocationResult
- LLM clients with an OpenAI-compatible interface (Anthropic, OpenAI)
- Prompt chains, bounded retry and the resilient invoker
- Task list extraction from freeform model output
"""

from .types import (
    AnalysisAction,
    Analysis,
    DEFAULT_ANALYSIS,
    ModelSettings,
    CacheEntry,
    InvocationResult,
    InvocationSource,
)
from .chain import LLMChain, PromptTemplate
from .invoke import ResilientInvoker
from .llm import LLMProvider, create_llm_client, get_default_model
from .retry import with_retry
from .utils import extract_tasks

__all__ = [
    "AnalysisAction",
    "Analysis",
    "DEFAULT_ANALYSIS",
    "ModelSettings",
    "CacheEntry",
    "InvocationResult",
    "InvocationSource",
    "LLMChain",
    "PromptTemplate",
    "ResilientInvoker",
    "LLMProvider",
    "create_llm_client",
    "get_default_model",
    "with_retry",
    "extract_tasks",
]
