import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import chat, sessions, webhooks
from app.config import get_settings
from app.database import init_db
from app.services.stream_service import StreamMessagingGateway

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s: %(name)s: %(message)s")
logging.getLogger("app").setLevel(settings.log_level.upper())
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Interview Rooms",
    description="Paired video + chat rooms for coding interview practice",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router)
app.include_router(chat.router)
app.include_router(webhooks.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed requests as 400."""
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request payload"},
    )


@app.on_event("startup")
async def startup_event():
    """Initialize database and the messaging gateway."""
    init_db()
    app.state.messaging_gateway = StreamMessagingGateway.from_settings(settings)


@app.on_event("shutdown")
async def shutdown_event():
    """Close the messaging gateway."""
    gateway = getattr(app.state, "messaging_gateway", None)
    if gateway is not None:
        await gateway.aclose()


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
