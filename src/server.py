"""
Vizzy Art Generator API server.
Proxies text-to-image and image-to-image requests to hosted AI providers with structured logging.
"""

import time
import traceback
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, File, Form, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pipelines import (
    ClientInputError,
    ImageToImagePipeline,
    PipelineError,
    Settings,
    TextToImagePipeline,
)
from pipelines.models import (
    ErrorResponse,
    GenerationResponse,
    HealthResponse,
    TextToImageRequest,
)

VERSION = "1.0.0"

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ]
)
logger = structlog.get_logger()

# ============================================================================
# DEPENDENCIES
# ============================================================================

@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings.from_env()


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound provider calls; None means the httpx default."""
    return None


async def get_http_client(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport)
):
    async with httpx.AsyncClient(
        timeout=settings.request_timeout_seconds,
        transport=transport
    ) as client:
        yield client


def get_text_to_image_pipeline(
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client)
) -> TextToImagePipeline:
    return TextToImagePipeline.from_settings(settings, http_client)


def get_image_to_image_pipeline(
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client)
) -> ImageToImagePipeline:
    return ImageToImagePipeline.from_settings(settings, http_client)

# ============================================================================
# FASTAPI APP
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check provider configuration on startup."""
    logger.info("server_starting", version=VERSION)

    settings = get_settings()
    for key_name in settings.missing_keys():
        logger.warning("api_key_missing", key=key_name)

    logger.info("server_ready",
               freepik_configured=settings.freepik_api_key is not None,
               stability_configured=settings.stability_api_key is not None)

    yield

    logger.info("server_shutting_down")

app = FastAPI(
    title="Vizzy Art Generator",
    description="Text-to-image and image-to-image generation backed by hosted AI providers",
    version=VERSION,
    lifespan=lifespan
)

# Add CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Room for the prompt field and multipart boundaries around the image
MULTIPART_OVERHEAD_BYTES = 64 * 1024


# Upload size middleware, registered before logging so rejections are logged
@app.middleware("http")
async def limit_upload_size(request: Request, call_next):
    """Refuse oversized image uploads from Content-Length, before the body is read."""
    if request.method == "POST" and request.url.path == "/api/image-to-image":
        settings = request.app.dependency_overrides.get(get_settings, get_settings)()
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() \
                and int(content_length) > settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES:
            logger.warning("upload_rejected",
                          content_length=int(content_length),
                          max_upload_bytes=settings.max_upload_bytes)
            return JSONResponse(
                status_code=413,
                content=ErrorResponse(
                    error=f"Image size exceeds {settings.max_upload_bytes // (1024 * 1024)}MB limit"
                ).model_dump(exclude_none=True)
            )
    return await call_next(request)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    request_id = str(uuid.uuid4())
    start = time.time()

    logger.info("request_started",
               request_id=request_id,
               method=request.method,
               path=request.url.path,
               client=request.client.host if request.client else None)

    try:
        response = await call_next(request)
        elapsed = time.time() - start

        logger.info("request_completed",
                   request_id=request_id,
                   status_code=response.status_code,
                   elapsed_seconds=round(elapsed, 3))

        return response
    except Exception as e:
        elapsed = time.time() - start
        logger.error("request_failed",
                    request_id=request_id,
                    error=str(e),
                    elapsed_seconds=round(elapsed, 3),
                    traceback=traceback.format_exc())
        raise

# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint."""
    return {
        "name": "Vizzy Art Generator",
        "version": VERSION,
        "status": "online",
        "endpoints": {
            "text_to_image": "/api/text-to-image",
            "image_to_image": "/api/image-to-image",
            "health": "/health"
        }
    }


@app.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)):
    """Report which providers have credentials configured."""
    providers = {
        "text_to_image": settings.freepik_api_key is not None,
        "image_to_image": settings.stability_api_key is not None
    }
    return HealthResponse(
        status="healthy" if all(providers.values()) else "degraded",
        version=VERSION,
        providers=providers
    )


@app.post("/api/text-to-image", response_model=GenerationResponse)
async def text_to_image(
    body: TextToImageRequest,
    response: Response,
    pipeline: TextToImagePipeline = Depends(get_text_to_image_pipeline)
):
    """
    Generate images from a text prompt.

    Always answers 200 for a non-empty prompt; provider failures come back as a
    placeholder image, flagged by the X-Generation-Degraded header.
    """
    result = await pipeline.generate(body.prompt)
    response.headers["X-Generation-Degraded"] = "true" if result.degraded else "false"
    return GenerationResponse.from_result(result)


@app.post("/api/image-to-image", response_model=GenerationResponse)
async def image_to_image(
    prompt: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    pipeline: ImageToImagePipeline = Depends(get_image_to_image_pipeline)
):
    """
    Transform an uploaded image according to a prompt.

    Provider and configuration failures are reported as 500 with details.
    """
    contents = None
    if image is not None:
        # The form is already buffered here; capping the read only bounds what
        # gets decoded. Declared oversized bodies are refused by limit_upload_size.
        contents = await image.read(settings.max_upload_bytes + 1)

    try:
        result = await pipeline.transform(prompt, contents)
    except ClientInputError:
        raise
    except PipelineError as e:
        return _transform_failure(e.message)
    except Exception as e:
        logger.error("img2img_unexpected_error",
                    error=str(e),
                    traceback=traceback.format_exc())
        return _transform_failure(str(e))

    return GenerationResponse.from_result(result)


def _transform_failure(details: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Failed to transform image", details=details).model_dump()
    )

# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(ClientInputError)
async def client_input_error_handler(request: Request, exc: ClientInputError):
    """Reject bad input before any provider is contacted."""
    logger.warning("client_input_error",
                  status_code=exc.status_code,
                  error=exc.message,
                  path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(exclude_none=True)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors, reported as 400."""
    logger.warning("request_validation_error", path=request.url.path, errors=str(exc.errors())[:500])
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="Invalid request", details=str(exc.errors())).model_dump()
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Custom HTTP exception handler with logging."""
    logger.warning("http_exception",
                  status_code=exc.status_code,
                  detail=exc.detail,
                  path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler."""
    logger.error("unhandled_exception",
                error=str(exc),
                path=request.url.path,
                traceback=traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True)
    )

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    logger.info("starting_server", host=settings.host, port=settings.port)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info"
    )
