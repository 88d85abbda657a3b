from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from exam_assistant.core.config import get_settings
from exam_assistant.core.logging import setup_logging
from exam_assistant.routers import auth, chatbot
from exam_assistant.services.chatbot.errors import ChatbotError
from exam_assistant.services.chatbot.vector_index import get_index_manager


settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: logging, then the vector collection. The API still serves
    # structured queries if the vector store cannot be created.
    setup_logging()
    try:
        await get_index_manager().initialize()
    except Exception:
        logger.exception("Vector index initialization failed; admin search unavailable")
    yield
    # Shutdown: cleanup if needed


app = FastAPI(
    title="Exam Assistant API",
    description="Grounded chatbot for exam scheduling data",
    version="1.0.0",
    lifespan=lifespan,
)
# Avoid 307 redirects for trailing slash that can cause redirect loops behind nginx
app.router.redirect_slashes = False

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:5173",
        "http://localhost",
        "http://127.0.0.1",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatbotError)
async def chatbot_error_handler(request: Request, exc: ChatbotError):
    message = str(exc) if exc.expose_detail else exc.public_message
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(
        status_code=exc.http_status,
        content={"success": False, "error": message},
    )


# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(chatbot.router, prefix="/chatbot", tags=["Chatbot"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
