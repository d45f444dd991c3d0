from fastapi import FastAPI, Request, Depends, status
from typing import Annotated, Optional
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import uuid
import logging
import time

from deskflow.core.settings import settings
from deskflow.core.logging import setup_logging
from deskflow.core.observability import TraceManager
from deskflow.core.cache import CacheClient
from deskflow.core.errors import ContextStoreError
from deskflow.db.models import Base
from deskflow.db.session import engine as db_engine
from deskflow.api.deps import get_engine, get_gateway
from deskflow.api.schemas import (
    MessageRequest, ChoiceRequest, ActionRequest, SweepRequest, SweepResponse, ResetResponse, HealthResponse,
)
from deskflow.llm.gateway import LLMGateway
from deskflow.workflow.engine import FlowEngine, RETRY_MESSAGE, RECOVERY_CHOICES
from deskflow.workflow.state import ConversationResponse

# Setup
setup_logging()
logger = logging.getLogger(__name__)

EngineDep = Annotated[FlowEngine, Depends(get_engine)]

def _uses_database() -> bool:
    return (
        settings.context.backend == "sql"
        or settings.records.sink == "database"
        or settings.records.known_issue_backend == "sql"
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the configured backends are reachable
    try:
        if _uses_database():
            async with db_engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        if settings.context.backend == "redis":
            CacheClient.get_client()
    except Exception as e:
        logger.error(f"Startup error: {e}")

    yield

    # Shutdown
    await CacheClient.close()
    await db_engine.dispose()

app = FastAPI(title="Deskflow Service Desk Assistant", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware for Trace ID
@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id", str(uuid.uuid4()))
    TraceManager.set_trace_id(trace_id)
    TraceManager.set_conversation_id(None)
    request.state.trace_id = trace_id

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    response.headers["X-Trace-Id"] = trace_id
    TraceManager.info(f"Request: {request.method} {request.url.path}", status=response.status_code, duration_ms=duration*1000)
    return response

def _apology(conversation_id: Optional[str] = None) -> dict:
    body = ConversationResponse(
        conversation_id=conversation_id,
        message=RETRY_MESSAGE,
        choices=RECOVERY_CHOICES,
        error=True,
    )
    return body.model_dump(mode="json", by_alias=True)

@app.exception_handler(ContextStoreError)
async def context_store_error_handler(request: Request, exc: ContextStoreError):
    TraceManager.error("Context store failure", exc=exc, path=request.url.path)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                        content=_apology(request.path_params.get("conversation_id")))

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        content=_apology(request.path_params.get("conversation_id")))

# Routes
@app.post("/conversations", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def start_conversation(engine: EngineDep):
    return await engine.start_conversation()

@app.post("/conversations/{conversation_id}/messages", response_model=ConversationResponse)
async def post_message(conversation_id: str, body: MessageRequest, engine: EngineDep):
    return await engine.process_message(conversation_id, body.message)

@app.post("/conversations/{conversation_id}/choices", response_model=ConversationResponse)
async def post_choice(conversation_id: str, body: ChoiceRequest, engine: EngineDep):
    return await engine.process_choice(conversation_id, body.value)

@app.post("/conversations/{conversation_id}/actions", response_model=ConversationResponse)
async def post_action(conversation_id: str, body: ActionRequest, engine: EngineDep):
    return await engine.process_action(conversation_id, body.action_id, body.confirmed)

@app.delete("/conversations/{conversation_id}", response_model=ResetResponse)
async def reset_conversation(conversation_id: str, engine: EngineDep):
    deleted = await engine.reset_conversation(conversation_id)
    return ResetResponse(conversation_id=conversation_id, deleted=deleted)

@app.post("/maintenance/sweep", response_model=SweepResponse)
async def sweep_expired(engine: EngineDep, body: Optional[SweepRequest] = None):
    removed = await engine.sweep_expired(body.max_age_minutes if body else None)
    return SweepResponse(removed=removed)

@app.get("/health", response_model=HealthResponse)
async def health_check(gateway: Annotated[Optional[LLMGateway], Depends(get_gateway)], check_llm: bool = False):
    llm_available = None
    if check_llm and gateway is not None:
        llm_available = await gateway.is_available()
    return HealthResponse(
        status="healthy",
        env=settings.env,
        context_backend=settings.context.backend,
        llm_available=llm_available,
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
