# Simmer API Main Entry Point
import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .deps import limiter
from .settings import settings
from .services.session_control import SessionControl
from .routers.ready import router as ready_router
from .routers.sessions import router as sessions_router
from .routers.schedule import router as schedule_router

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("simmer")

app = FastAPI(title="Simmer API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Live sessions are process-local; tests swap in a fresh instance
app.state.session_control = SessionControl.from_settings(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(sessions_router, prefix="/api")
app.include_router(schedule_router, prefix="/api")
