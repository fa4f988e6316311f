# promptcraft/app.py
import time
from typing import Optional

# Load .env BEFORE any promptcraft imports (settings are read at import time)
from dotenv import load_dotenv
load_dotenv(override=True)

from fastapi import Body, FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from promptcraft import auth as authmod
from promptcraft import db as dbmod
from promptcraft import errors, monitoring
from promptcraft.collaborator import LLMCollaborator
from promptcraft.config import get_settings
from promptcraft.llm_wrapper import LLMClient
from promptcraft.schemas import AnalyzeRequest, EnhanceRequest, SaveRequest
from promptcraft.workflow import EnhancementWorkflow

MAX_HISTORY_LIMIT = 100
API_KEY_HEADER = "x-api-key"

app = FastAPI(title="Prompt Refinement API")

# Initialize DB tables on startup
dbmod.init_db()

# one store + workflow per process; the LLM settings are injected, not global
store = dbmod.EnhancementStore()
workflow = EnhancementWorkflow(store, LLMCollaborator(LLMClient(get_settings().llm)))


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ---------------------------------------------------------------------------
# Auth + rate-limit middleware (runs first on /api/* paths)
# ---------------------------------------------------------------------------
@app.middleware("http")
async def api_key_and_rate_limit_middleware(request: Request, call_next):
    if not request.url.path.startswith("/api/"):
        return await call_next(request)

    api_key = request.headers.get(API_KEY_HEADER)
    if not authmod.is_key_allowed(api_key):
        return _error(401, "Missing or invalid API key")

    allowed, _remaining = authmod.check_rate_limit(api_key or "")
    if not allowed:
        resp = _error(429, "Rate limit exceeded")
        resp.headers["Retry-After"] = "60"
        return resp

    return await call_next(request)


# ---------------------------------------------------------------------------
# Metrics middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    except Exception:
        monitoring.logger.exception("Unhandled exception in request", extra={"path": request.url.path})
        raise
    finally:
        monitoring.observe_request(start, request, status)


# ---------------------------------------------------------------------------
# Error mapping: every failure leaves as {"error": "..."}
# ---------------------------------------------------------------------------
@app.exception_handler(errors.EnhancementError)
async def enhancement_error_handler(request: Request, exc: errors.EnhancementError):
    if exc.status_code >= 500:
        monitoring.logger.error(
            "Request failed",
            extra={"path": request.url.path, "error_code": exc.error_code, "detail": exc.message},
        )
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    monitoring.logger.info("Invalid request body", extra={"path": request.url.path, "errors": str(exc.errors())[:500]})
    return _error(400, "Invalid request data")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    monitoring.logger.exception("Unexpected error", extra={"path": request.url.path})
    return _error(500, "Internal server error")


def _history_limit(raw: Optional[str]) -> int:
    # missing, non-numeric or non-positive -> default
    try:
        limit = int(raw) if raw is not None else dbmod.DEFAULT_HISTORY_LIMIT
    except ValueError:
        return dbmod.DEFAULT_HISTORY_LIMIT
    if limit <= 0:
        return dbmod.DEFAULT_HISTORY_LIMIT
    return min(limit, MAX_HISTORY_LIMIT)


# ---------------------------------------------------------------------------
# Workflow endpoints
# ---------------------------------------------------------------------------
@app.post("/api/analyze")
def analyze(req: AnalyzeRequest):
    """
    POST /api/analyze
    Body: { "originalPrompt": "...", "style": "detailed" }
    Creates the record, runs analysis + question generation, returns the record.
    """
    monitoring.logger.info("Received /api/analyze request", extra={"prompt_preview": req.original_prompt[:200]})
    record = workflow.start(req.original_prompt, req.style)
    return JSONResponse(status_code=200, content=record.to_json())


@app.post("/api/enhance")
def enhance(req: EnhanceRequest):
    """
    POST /api/enhance
    Body: { "enhancementId": "...", "answers": [{"questionId": "...", "answer": ...}], "style": "..." }
    """
    monitoring.logger.info("Received /api/enhance request", extra={"enhancement_id": req.enhancement_id})
    record = workflow.answer(req.enhancement_id, req.answers, req.style)
    return JSONResponse(status_code=200, content=record.to_json())


@app.get("/api/enhancement/{enhancement_id}")
def get_enhancement(enhancement_id: str = Path(..., description="Enhancement ID to fetch")):
    record = workflow.fetch(enhancement_id)
    return JSONResponse(status_code=200, content=record.to_json())


# ---------------------------------------------------------------------------
# History / saved prompts
# ---------------------------------------------------------------------------
@app.get("/api/history")
def get_history(limit: Optional[str] = Query(None)):
    """GET /api/history?limit=N -> completed enhancements, newest first."""
    records = store.list_recent(_history_limit(limit))
    return JSONResponse(status_code=200, content=[r.to_json() for r in records])


@app.get("/api/saved")
def get_saved():
    records = store.list_saved()
    return JSONResponse(status_code=200, content=[r.to_json() for r in records])


@app.post("/api/save/{enhancement_id}")
def save_enhancement(enhancement_id: str, req: Optional[SaveRequest] = Body(None)):
    """
    POST /api/save/{id}
    Body (optional): { "title": "..." }  (trimmed, 1-120 chars)
    """
    title = req.title if req else None
    record = store.set_saved(enhancement_id, title)
    if record is None:
        raise errors.NotFoundError()
    monitoring.inc_save_toggle("save")
    return JSONResponse(status_code=200, content=record.to_json())


@app.delete("/api/save/{enhancement_id}")
def unsave_enhancement(enhancement_id: str):
    record = store.set_unsaved(enhancement_id)
    if record is None:
        raise errors.NotFoundError()
    monitoring.inc_save_toggle("unsave")
    return JSONResponse(status_code=200, content=record.to_json())


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    if not monitoring.PROMETHEUS_ENABLED:
        return PlainTextResponse("Prometheus disabled", status_code=404)
    payload, content_type = monitoring.prometheus_metrics_response()
    return Response(content=payload, media_type=content_type)
