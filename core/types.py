import json
from enum import Enum
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, replace

from .utils import clean_json_response


class AnalysisAction(Enum):
    REASON = "reason"
    SEARCH = "search"


AVAILABLE_ACTIONS = [action.value for action in AnalysisAction]


@dataclass(frozen=True)
class ModelSettings:
    """
    Which model to talk to for one session.

    ``api_key`` is only set when the user brought their own key; ``None``
    means the server-side key from the environment is used.
    """
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: Optional[str] = None
    temperature: float = 0.9
    max_tokens: int = 400
    base_url: Optional[str] = None
    language: str = "English"

    @classmethod
    def from_config(cls, cfg: Any) -> "ModelSettings":
        return cls(
            provider=cfg.llm_provider,
            model=cfg.llm_model,
            temperature=cfg.llm_temperature,
            max_tokens=cfg.llm_max_tokens,
            language=cfg.language,
        )

    @property
    def has_custom_key(self) -> bool:
        return bool(self.api_key)

    def with_overrides(self, **changes: Any) -> "ModelSettings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        # The key itself never leaves the process
        return {
            "provider": self.provider,
            "model": self.model,
            "custom_api_key": self.has_custom_key,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "base_url": self.base_url,
            "language": self.language,
        }


@dataclass(frozen=True)
class Analysis:
    """How a task should be executed and the argument for that action."""
    action: AnalysisAction
    arg: str

    @classmethod
    def from_json(cls, text: str) -> "Analysis":
        """Parse a model reply. Raises ValueError if it is not a valid Analysis."""
        data = json.loads(clean_json_response(text))
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        action = AnalysisAction(str(data.get("action", "")).strip().lower())
        arg = data.get("arg", "")
        if not isinstance(arg, str):
            arg = json.dumps(arg)
        return cls(action=action, arg=arg)

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action.value, "arg": self.arg}


DEFAULT_ANALYSIS = Analysis(
    action=AnalysisAction.REASON,
    arg="Fallback due to parsing failure",
)


@dataclass
class CacheEntry:
    """A cached model response. ``timestamp`` is epoch milliseconds."""
    key: str
    prompt: str
    response: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "prompt": self.prompt,
            "response": self.response,
            "timestamp": self.timestamp,
        }


class InvocationSource(Enum):
    CACHE = "cache"
    MODEL = "model"
    FALLBACK = "fallback"
    DEFAULT = "default"


@dataclass
class InvocationResult:
    """Outcome of a resilient model call.

    ``cause`` holds the last suppressed exception when the text did not come
    straight from the primary chain.
    """
    text: str
    source: InvocationSource
    cause: Optional[BaseException] = None
    attempts: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def recovered(self) -> bool:
        return self.source in (InvocationSource.FALLBACK, InvocationSource.DEFAULT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "source": self.source.value,
            "cause": repr(self.cause) if self.cause else None,
            "attempts": self.attempts,
            "metadata": self.metadata,
        }
