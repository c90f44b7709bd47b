"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from defichat import __version__
from defichat.api.endpoints import router
from defichat.config import Settings
from defichat.services.engine import ChatEngine, create_engine
from defichat.utils.logging import LogConfig, setup_logging


def create_app(engine: ChatEngine | None = None, settings: Settings | None = None) -> FastAPI:
    """Create the application.

    Args:
        engine: Pre-built engine (tests inject one with fake collaborators)
        settings: Configuration used to build the engine when none is given
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "engine", None) is None:
            resolved = settings or Settings.from_env()
            setup_logging(LogConfig.from_settings(resolved))
            app.state.engine = create_engine(resolved)
        yield

    app = FastAPI(
        title="DefiChat",
        description=(
            "A conversational command engine for DeFi wallets: slash commands, live chain tools, "
            "USDC transfer payloads and threaded conversation memory."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Conversation", "description": "Send messages and classify them."},
            {"name": "Threads", "description": "Create, switch, clear and delete conversation threads."},
            {"name": "Tools", "description": "Run chain and DeFi tools directly."},
            {"name": "Transactions", "description": "Build unsent USDC transaction payloads."},
            {"name": "Health", "description": "Service health monitoring and status checks."},
        ],
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("defichat.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
