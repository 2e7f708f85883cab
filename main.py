import logging
import time

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from listing_optimizer.config import load_settings
from listing_optimizer.constants import parse_platform
from listing_optimizer.errors import BadRequestError, SessionNotFound
from listing_optimizer.gateway import ListingGateway
from listing_optimizer.llm.client import OpenRouterClient
from listing_optimizer.request_logging import RequestLogWriter
from listing_optimizer.schemas import PlatformSelection, ProductInputUpdate
from listing_optimizer.sessions import SessionStore
from listing_optimizer.utils import image_bytes_to_data_url
from listing_optimizer.views import list_platforms, render_session

settings = load_settings()

logger = logging.getLogger("listing-optimizer")
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

text_client = OpenRouterClient(
    api_key=settings.openrouter_api_key,
    base_url=settings.openrouter_base_url,
    timeout=settings.request_timeout,
    referer=settings.openrouter_referer,
    app_name=settings.openrouter_app_name,
)
image_client = OpenRouterClient(
    api_key=settings.openrouter_api_key,
    base_url=settings.openrouter_base_url,
    timeout=settings.image_request_timeout,
    referer=settings.openrouter_referer,
    app_name=settings.openrouter_app_name,
)

gateway = ListingGateway(settings=settings, text_client=text_client, image_client=image_client)
sessions = SessionStore(gateway, ttl_seconds=settings.session_ttl_seconds)
request_log_writer = RequestLogWriter(
    retention_days=settings.log_requests_retention_days,
    max_files=settings.log_requests_max_files,
)

app = FastAPI(title="J-Listing Optimizer", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    if not settings.log_requests or not request.url.path.startswith("/api/"):
        return await call_next(request)

    body = await request.body() if request.method in {"POST", "PUT", "PATCH"} else None
    entry = await request_log_writer.build_entry(request, body)
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        duration_ms = (time.perf_counter() - started) * 1000
        await run_in_threadpool(request_log_writer.write, entry, 500, duration_ms, str(exc))
        raise
    duration_ms = (time.perf_counter() - started) * 1000
    await run_in_threadpool(request_log_writer.write, entry, response.status_code, duration_ms)
    return response


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(BadRequestError)
async def bad_request_handler(request: Request, exc: BadRequestError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "sessions": len(sessions),
        "models": {
            "text_model": settings.text_model,
            "text_model_online": settings.text_model_online,
            "image_model": settings.image_model,
        },
    }


@app.get("/api/v1/platforms")
def get_platforms() -> dict:
    return {"platforms": list_platforms()}


@app.post("/api/v1/sessions", status_code=201)
def create_session() -> dict:
    return render_session(sessions.create())


@app.get("/api/v1/sessions/{session_id}")
def get_session(session_id: str) -> dict:
    return render_session(sessions.get(session_id))


@app.delete("/api/v1/sessions/{session_id}", status_code=204)
def delete_session(session_id: str) -> None:
    sessions.delete(session_id)


@app.post("/api/v1/sessions/{session_id}/platform")
def select_platform(session_id: str, body: PlatformSelection) -> dict:
    session = sessions.get(session_id)
    try:
        platform = parse_platform(body.platform)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    session.select_platform(platform)
    return render_session(session)


@app.patch("/api/v1/sessions/{session_id}/input")
def update_input(session_id: str, body: ProductInputUpdate) -> dict:
    session = sessions.get(session_id)
    session.update_input(body.model_dump(exclude_unset=True))
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/competitors")
def add_competitor(session_id: str) -> dict:
    session = sessions.get(session_id)
    session.add_competitor_url()
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/extract")
async def extract_product(session_id: str) -> dict:
    session = sessions.get(session_id)
    await session.extract_product_info()
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/diagnosis")
async def start_diagnosis(session_id: str) -> dict:
    session = sessions.get(session_id)
    await session.start_diagnosis()
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/optimization")
async def generate_plans(session_id: str) -> dict:
    session = sessions.get(session_id)
    await session.generate_plans()
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/plans/{index}/select")
def select_plan(session_id: str, index: int) -> dict:
    session = sessions.get(session_id)
    session.select_plan(index)
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/reference-image")
async def upload_reference_image(session_id: str, image: UploadFile = File(...)) -> dict:
    session = sessions.get(session_id)

    if image.content_type not in settings.allowed_mime_types:
        raise HTTPException(status_code=400, detail="Unsupported image type.")

    try:
        data = await image.read()
    except Exception as exc:
        raise HTTPException(status_code=400, detail="Failed to read uploaded file.") from exc

    if not data:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")

    if len(data) > settings.max_image_bytes:
        raise HTTPException(status_code=400, detail="Image is too large.")

    session.set_reference_image(image_bytes_to_data_url(data, image.content_type))
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/images/{image_id}")
async def generate_image(session_id: str, image_id: int) -> dict:
    session = sessions.get(session_id)
    await session.generate_image(image_id)
    return render_session(session)


@app.post("/api/v1/sessions/{session_id}/reset")
def reset_session(session_id: str) -> dict:
    session = sessions.get(session_id)
    session.reset()
    return render_session(session)
