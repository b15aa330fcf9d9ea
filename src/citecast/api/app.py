"""
Citecast API
FastAPI application over the project service and the job pipeline:
- /projects, /sources, /runs, /jobs: project actions and status polling
- /cron/worker: scheduled sweep trigger (Bearer CRON_SECRET)
- /health: liveness
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from citecast import __version__
from citecast.config import Settings, settings as app_settings
from citecast.core.errors import RateLimitExceededError, ServiceError
from citecast.core.logging import setup_logging, get_logger
from citecast.core.runtime import Runtime, build_runtime
from citecast.schema import (
    ContextProfile, GeneratedPost, GenerationRun, HashtagDensity, Job, JobLog, Project,
    Source, Strictness, TonePreset,
)
from citecast.utils import db as db_utils

# Initialize logging before app creation
setup_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Citecast API",
    version=__version__,
    description="Source-grounded social content generation with a durable job pipeline",
)

_runtime: Optional[Runtime] = None

# ============================================
# DEPENDENCY INJECTION
# ============================================

def get_runtime() -> Runtime:
    """Pipeline objects bound to the application database."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime(db_utils.engine)
    return _runtime


def get_settings() -> Settings:
    return app_settings


# ============================================
# PYDANTIC MODELS (Request)
# ============================================

class ProjectCreateRequest(BaseModel):
    name: str
    owner_id: str
    description: Optional[str] = None


class UrlSourceRequest(BaseModel):
    url: str


class TranscriptRequest(BaseModel):
    text: str = Field(..., min_length=1)


class GenerationRunRequest(BaseModel):
    tone_preset: TonePreset = TonePreset.PROFESSIONAL
    strictness: Strictness = Strictness.MODERATE
    hashtag_density: HashtagDensity = HashtagDensity.MEDIUM


# ============================================
# VIEWS (Response)
# ============================================

def project_view(project: Project) -> Dict[str, Any]:
    return project.model_dump(mode="json")


def source_view(source: Source) -> Dict[str, Any]:
    data = source.model_dump(mode="json", exclude={"file_bytes", "extracted_text", "transcript_text"})
    data["text_length"] = len(source.text or "")
    return data


def profile_view(profile: Optional[ContextProfile]) -> Optional[Dict[str, Any]]:
    return profile.model_dump(mode="json") if profile else None


def run_view(run: GenerationRun) -> Dict[str, Any]:
    return run.model_dump(mode="json")


def post_view(post: GeneratedPost) -> Dict[str, Any]:
    return post.model_dump(mode="json")


def job_view(job: Job) -> Dict[str, Any]:
    return job.model_dump(mode="json")


def log_view(entry: JobLog) -> Dict[str, Any]:
    return entry.model_dump(mode="json")


# ============================================
# ERROR HANDLING
# ============================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after_minutes * 60)}
    logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=str(exc))
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)}, headers=headers)


# ============================================
# STARTUP/SHUTDOWN EVENTS
# ============================================

@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("api_startup", version=__version__, env=app_settings.APP_ENV)
    try:
        db_utils.init_db()
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Let in-flight background sweeps finish."""
    if _runtime is not None and _runtime.kicker.pending:
        logger.info("waiting_for_background_sweeps", pending=_runtime.kicker.pending)
        await _runtime.kicker.drain()
    logger.info("api_shutdown")


# ============================================
# HEALTH CHECK
# ============================================

@app.get("/health")
async def health_check():
    return {"status": "ok", "version": __version__}


# ============================================
# SCHEDULED SWEEP
# ============================================

@app.api_route("/cron/worker", methods=["GET", "POST"])
async def cron_worker(
    authorization: Optional[str] = Header(None),
    runtime: Runtime = Depends(get_runtime),
    config: Settings = Depends(get_settings),
):
    """
    Scheduled sweep. Authenticated with 'Authorization: Bearer <CRON_SECRET>'.
    """
    if not config.cron_secret:
        logger.error("cron_secret_not_configured")
        raise HTTPException(status_code=500, detail="CRON_SECRET not configured")

    if authorization != f"Bearer {config.cron_secret}":
        logger.warning("cron_unauthorized")
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = await runtime.worker.run_sweep()
    return {
        "success": True,
        "processed": result.processed,
        "errors": result.errors,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ============================================
# PROJECTS
# ============================================

@app.post("/projects", status_code=201)
async def create_project(request: ProjectCreateRequest, runtime: Runtime = Depends(get_runtime)):
    project = runtime.projects.create_project(
        name=request.name, owner_id=request.owner_id, description=request.description
    )
    return project_view(project)


@app.get("/projects/{project_id}")
async def get_project(project_id: UUID, runtime: Runtime = Depends(get_runtime)):
    overview = runtime.projects.get_project_overview(project_id)
    return {
        "project": project_view(overview["project"]),
        "sources": [source_view(s) for s in overview["sources"]],
        "profile": profile_view(overview["profile"]),
        "runs": [run_view(r) for r in overview["runs"]],
        "jobs": [job_view(j) for j in overview["jobs"]],
    }


@app.post("/projects/{project_id}/sources/url", status_code=202)
async def add_url_source(project_id: UUID, request: UrlSourceRequest, runtime: Runtime = Depends(get_runtime)):
    source = runtime.projects.add_url_source(project_id, request.url)
    return source_view(source)


@app.post("/sources/{source_id}/transcript", status_code=202)
async def attach_transcript(source_id: UUID, request: TranscriptRequest, runtime: Runtime = Depends(get_runtime)):
    source = runtime.projects.attach_transcript(source_id, request.text)
    return source_view(source)


@app.post("/projects/{project_id}/profile", status_code=202)
async def build_profile(project_id: UUID, runtime: Runtime = Depends(get_runtime)):
    job = runtime.projects.build_context_profile(project_id)
    return job_view(job)


@app.post("/projects/{project_id}/runs", status_code=202)
async def start_run(
    project_id: UUID,
    request: Optional[GenerationRunRequest] = None,
    runtime: Runtime = Depends(get_runtime),
):
    request = request or GenerationRunRequest()
    run = runtime.projects.start_generation_run(
        project_id,
        tone_preset=request.tone_preset,
        strictness=request.strictness,
        hashtag_density=request.hashtag_density,
    )
    return run_view(run)


@app.get("/projects/{project_id}/chunks/search")
async def search_chunks(
    project_id: UUID,
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    runtime: Runtime = Depends(get_runtime),
):
    results = runtime.projects.search_chunks(project_id, q, limit=limit)
    return {
        "query": q,
        "results": [
            {
                "chunk_id": str(item["chunk"].id),
                "source_id": str(item["chunk"].source_id),
                "chunk_index": item["chunk"].chunk_index,
                "score": item["score"],
                "headings": item["chunk"].headings,
                "content": item["chunk"].content,
            }
            for item in results
        ],
    }


# ============================================
# RUNS & JOBS (polling)
# ============================================

@app.get("/runs/{run_id}")
async def get_run(run_id: UUID, runtime: Runtime = Depends(get_runtime)):
    result = runtime.projects.get_run(run_id)
    return {"run": run_view(result["run"]), "posts": [post_view(p) for p in result["posts"]]}


@app.get("/jobs/{job_id}")
async def get_job(job_id: UUID, runtime: Runtime = Depends(get_runtime)):
    result = runtime.projects.get_job(job_id)
    return {"job": job_view(result["job"]), "logs": [log_view(entry) for entry in result["logs"]]}
