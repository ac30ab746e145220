import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError

from pdf_relay.config import RelaySettings
from pdf_relay.conversion import ConversionService, RelayError, RenderOptions, ValidationFailure
from pdf_relay.conversion.adapters import (
    AdobeAssetUploader,
    AdobeAuthenticator,
    AdobeHtmlToPdfJobs,
    HttpResultFetcher,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

app = FastAPI(
    title="PDF Relay",
    version=os.getenv("PDF_RELAY_VERSION", "0.1.0"),
    description=(
        "Accepts raw HTML, converts it with Adobe PDF Services and streams "
        "the resulting PDF back to the caller."
    ),
)


def _parse_allowed_origins() -> list[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

SETTINGS: RelaySettings | None = None
SERVICE: ConversionService | None = None
HTTP_CLIENT: httpx.AsyncClient | None = None


class GeneratePdfRequest(BaseModel):
    html: Optional[str] = None


def build_service(
    settings: RelaySettings,
    http: httpx.AsyncClient,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ConversionService:
    """Wire the Adobe adapters into a ConversionService."""
    return ConversionService(
        auth=AdobeAuthenticator(http, settings),
        assets=AdobeAssetUploader(http, settings),
        jobs=AdobeHtmlToPdfJobs(http, settings),
        results=HttpResultFetcher(http),
        options=RenderOptions(),
        poll_interval=settings.poll_interval_sec,
        max_polls=settings.max_polls,
        sleep=sleep,
    )


@app.on_event("startup")
async def _startup() -> None:
    # Missing credentials stop the server here instead of failing the first request.
    global SETTINGS, SERVICE, HTTP_CLIENT
    SETTINGS = RelaySettings.from_env()
    HTTP_CLIENT = httpx.AsyncClient(timeout=httpx.Timeout(SETTINGS.http_timeout_sec, connect=10.0))
    SERVICE = build_service(SETTINGS, HTTP_CLIENT)
    logger.info("PDF relay ready (PDF Services at %s)", SETTINGS.pdf_services_url)


@app.on_event("shutdown")
async def _shutdown() -> None:
    global HTTP_CLIENT
    if HTTP_CLIENT is not None:
        await HTTP_CLIENT.aclose()
        HTTP_CLIENT = None


def get_settings() -> RelaySettings:
    assert SETTINGS is not None
    return SETTINGS


def get_service() -> ConversionService:
    assert SERVICE is not None
    return SERVICE


@app.exception_handler(RelayError)
async def _relay_error(request: Request, exc: RelayError) -> PlainTextResponse:
    return PlainTextResponse(str(exc), status_code=exc.status_code)


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception) -> PlainTextResponse:
    logger.exception("Full PDF generation flow failed")
    return PlainTextResponse("An internal server error occurred.", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.get("/", include_in_schema=False)
async def index() -> FileResponse:
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")


@app.get("/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.post("/api/generate-pdf", response_class=StreamingResponse)
async def generate_pdf(
    request: Request,
    service: ConversionService = Depends(get_service),
    settings: RelaySettings = Depends(get_settings),
) -> Response:
    """Convert the posted HTML to PDF and stream it back.

    Expects a JSON body `{"html": "..."}`. Returns 400 when `html` is missing,
    413 when the body is over the size cap, and 500 with a plain-text message
    when any vendor step fails.
    """
    too_large = f"Request body exceeds {settings.max_body_mb} MB."
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > settings.max_body_bytes:
        return PlainTextResponse(too_large, status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > settings.max_body_bytes:
            return PlainTextResponse(too_large, status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

    try:
        payload = GeneratePdfRequest.model_validate_json(body)
    except ValidationError:
        raise ValidationFailure()

    stream = await service.open_pdf(payload.html)
    logger.info("[%s] Streaming PDF to client.", stream.run.id)
    return StreamingResponse(
        stream.iter_bytes(),
        media_type="application/pdf",
        headers={"Content-Disposition": 'inline; filename="document.pdf"'},
    )


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:3000). Set PORT env var to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    # Enable reload in dev unless explicitly disabled
    reload = os.getenv("RELOAD", "true").lower() in {"1", "true", "yes", "on"}

    uvicorn.run("pdf_relay.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
