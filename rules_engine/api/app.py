"""FastAPI application wiring"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rules_engine import __version__
from rules_engine.api.alerts import router as alerts_router
from rules_engine.api.rules import router as rules_router
from rules_engine.engine import Engine


def create_app(engine: Engine) -> FastAPI:
    """
    Build the HTTP app around an engine.

    The evaluation thread runs for the lifetime of the app: it is started on
    startup and stopped (and the stores closed) on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine.start()
        yield
        engine.close()

    app = FastAPI(
        title="Rules Engine API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=engine.config['api'].get('cors_origins', []),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rules_router)
    app.include_router(alerts_router)

    @app.get("/")
    def root():
        return {"service": "Rules.Engine", "status": "ok", "docs": "/docs"}

    @app.get("/health")
    def health():
        channel = engine.channel
        return {
            "status": "healthy",
            "evaluation": {
                "running": engine.running,
                "cycles": engine.cycle_count,
                "interval_seconds": engine.interval,
            },
            "realtime": {
                "enabled": channel is not None,
                "connected": bool(getattr(channel, 'connected', False)),
            },
        }

    return app
