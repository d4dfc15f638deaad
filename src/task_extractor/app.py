"""FastAPI application with lifespan and health endpoint."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from task_extractor.api.router import router as api_router
from task_extractor.api.schemas import HealthResponse
from task_extractor.config import get_settings
from task_extractor.logging_config import configure_logging
from task_extractor.slack.client import get_message_source
from task_extractor.workflow.client import get_workflow_client
from task_extractor.workflow.client import reset_client as reset_workflow_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: configure logging, validate config, close clients on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    errors = settings.validation_errors()
    if errors and settings.environment != "test":
        raise RuntimeError("Invalid configuration: " + "; ".join(errors))

    app.state.settings = settings
    yield

    await get_workflow_client().aclose()
    reset_workflow_client()


app = FastAPI(
    title="Task Extractor",
    lifespan=lifespan,
)
app.include_router(api_router)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report Slack and workflow API connectivity."""
    source = await get_message_source()
    slack_ok, workflow_ok = await asyncio.gather(
        source.test_connection(),
        get_workflow_client().test_connection(),
    )
    return HealthResponse(
        status="ok" if slack_ok and workflow_ok else "error",
        service="task-extractor",
        version="0.1.0",
        services={
            "slack": "connected" if slack_ok else "error",
            "workflow": "connected" if workflow_ok else "error",
        },
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
