"""
Eind - FastAPI Application

Main entry point for the Eind API.
Exposes the running peer session to the chat UI: identity and status,
conversations and messages, and call control.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from eind.core.logging_config import setup_logging

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Session is created on the first request that needs it
    yield
    from eind.api.routes.dependencies import close_session

    close_session()


app = FastAPI(
    title="Eind",
    description="Eind - Seamless P2P chat and calls",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/")
async def root():
    return {"message": "Eind API", "docs": "/docs"}


@app.get("/api/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok"}


# Include routers
from eind.api.routes import session, conversations, calls

app.include_router(session.router, prefix="/api/session", tags=["session"])
app.include_router(conversations.router, prefix="/api/conversations", tags=["conversations"])
app.include_router(calls.router, prefix="/api/calls", tags=["calls"])
