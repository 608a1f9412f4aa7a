import logging
from datetime import datetime
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from agents.agent_service import AgentService, create_agent_service
from core.llm import get_default_model, resolve_provider
from core.types import Analysis, AnalysisAction, ModelSettings
from storage.cache import ResponseCache, get_response_cache

logger = logging.getLogger(__name__)

agent_service: Optional[AgentService] = None


def get_agent_service() -> AgentService:
    """Orchestrator selected by AGENT_MOCK_MODE, built on first use."""
    global agent_service
    if agent_service is None:
        agent_service = create_agent_service()
    return agent_service


def get_cache() -> ResponseCache:
    return get_response_cache()


# Request/Response Models
class ModelSettingsModel(BaseModel):
    provider: Optional[str] = Field(default=None, description="'anthropic' or 'openai'")
    model: Optional[str] = None
    api_key: Optional[str] = Field(default=None, description="User-supplied API key")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    base_url: Optional[str] = None
    language: Optional[str] = None

    def to_settings(self) -> ModelSettings:
        from config import config
        overrides = self.model_dump()
        # Switching provider without naming a model uses that provider's default
        provider = overrides["provider"]
        if provider and not overrides["model"] and resolve_provider(provider).value != config.llm_provider:
            overrides["model"] = get_default_model(resolve_provider(provider))
        return ModelSettings.from_config(config).with_overrides(**overrides)


class AnalysisModel(BaseModel):
    action: AnalysisAction = AnalysisAction.REASON
    arg: str = ""

    @classmethod
    def from_analysis(cls, analysis: Analysis) -> "AnalysisModel":
        return cls(action=analysis.action, arg=analysis.arg)


class StartGoalRequest(BaseModel):
    goal: str = Field(..., min_length=1, description="The user's objective")
    language: Optional[str] = None
    settings: ModelSettingsModel = Field(default_factory=ModelSettingsModel)


class AnalyzeTaskRequest(BaseModel):
    goal: str = Field(..., min_length=1)
    task: str = Field(..., min_length=1)
    settings: ModelSettingsModel = Field(default_factory=ModelSettingsModel)


class ExecuteTaskRequest(BaseModel):
    goal: str = Field(..., min_length=1)
    task: str = Field(..., min_length=1)
    analysis: AnalysisModel = Field(default_factory=AnalysisModel)
    language: Optional[str] = None
    settings: ModelSettingsModel = Field(default_factory=ModelSettingsModel)


class CreateTasksRequest(BaseModel):
    goal: str = Field(..., min_length=1)
    tasks: List[str] = Field(default_factory=list, description="Pending tasks")
    last_task: str = ""
    result: str = ""
    completed_tasks: List[str] = Field(default_factory=list)
    language: Optional[str] = None
    settings: ModelSettingsModel = Field(default_factory=ModelSettingsModel)


class TaskListResponse(BaseModel):
    tasks: List[str]


class ExecuteTaskResponse(BaseModel):
    result: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Task Orchestrator API starting...")
    yield
    logger.info("Task Orchestrator API shutting down...")


app = FastAPI(
    title="Autonomous Task Orchestrator",
    description="""
    Stateless stages of an autonomous agent loop:
    - **start**: break a goal into tasks
    - **analyze**: decide whether a task needs reasoning or a web search
    - **execute**: run a task against the model or the search tool
    - **create**: propose follow-up tasks from a result

    The caller owns the task queue and the loop budget.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api")
async def api_info():
    """API info endpoint."""
    return {
        "name": "Autonomous Task Orchestrator",
        "version": "1.0.0",
        "status": "running",
        "stages": ["start", "analyze", "execute", "create"],
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    from config import config
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "llm_provider": config.llm_provider,
        "mock_mode": config.mock_mode,
        "anthropic_configured": bool(config.anthropic_api_key),
        "openai_configured": bool(config.openai_api_key),
        "tavily_configured": bool(config.tavily_api_key),
    }


@app.post("/api/agent/start", response_model=TaskListResponse)
async def start_goal(request: StartGoalRequest, service: AgentService = Depends(get_agent_service)):
    """Break a goal into its initial tasks."""
    try:
        settings = request.settings.to_settings()
        tasks = await service.start_goal_agent(settings, request.goal, request.language)
    except Exception as e:
        logger.error("start endpoint failed: %r", e)
        raise HTTPException(status_code=500, detail=str(e))
    return TaskListResponse(tasks=tasks)


@app.post("/api/agent/analyze", response_model=AnalysisModel)
async def analyze_task(request: AnalyzeTaskRequest, service: AgentService = Depends(get_agent_service)):
    """Decide how a task should be executed."""
    try:
        settings = request.settings.to_settings()
        analysis = await service.analyze_task_agent(settings, request.goal, request.task)
    except Exception as e:
        logger.error("analyze endpoint failed: %r", e)
        raise HTTPException(status_code=500, detail=str(e))
    return AnalysisModel.from_analysis(analysis)


@app.post("/api/agent/execute", response_model=ExecuteTaskResponse)
async def execute_task(request: ExecuteTaskRequest, service: AgentService = Depends(get_agent_service)):
    """Execute a task and return its result text."""
    try:
        settings = request.settings.to_settings()
        analysis = Analysis(action=request.analysis.action, arg=request.analysis.arg)
        result = await service.execute_task_agent(
            settings, request.goal, request.task, analysis, request.language
        )
    except Exception as e:
        logger.error("execute endpoint failed: %r", e)
        raise HTTPException(status_code=500, detail=str(e))
    return ExecuteTaskResponse(result=result)


@app.post("/api/agent/create", response_model=TaskListResponse)
async def create_tasks(request: CreateTasksRequest, service: AgentService = Depends(get_agent_service)):
    """Propose follow-up tasks from the last result."""
    try:
        settings = request.settings.to_settings()
        tasks = await service.create_tasks_agent(
            settings,
            request.goal,
            request.tasks,
            request.last_task,
            request.result,
            request.completed_tasks,
            request.language,
        )
    except Exception as e:
        logger.error("create endpoint failed: %r", e)
        raise HTTPException(status_code=500, detail=str(e))
    return TaskListResponse(tasks=tasks)


@app.get("/api/cache/status")
async def cache_status(cache: ResponseCache = Depends(get_cache)):
    """Current response cache backend and degraded-mode flag."""
    return cache.status()


@app.post("/api/cache/memory-only")
async def force_memory_only(cache: ResponseCache = Depends(get_cache)):
    """Stop using the persistent cache store."""
    cache.force_memory_only_mode()
    return cache.status()


@app.post("/api/cache/reset")
async def reset_cache_errors(cache: ResponseCache = Depends(get_cache)):
    """Clear the degraded-mode flag so the persistent store is retried."""
    cache.reset_error_status()
    return cache.status()


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
