"""
Ticket Assistant Service - FastAPI Application
Generation backend: OpenAI-compatible endpoint (Gemini by default) with
credential failover across GENERATION_API_KEYS.
"""

import asyncio
import sys
from contextlib import asynccontextmanager, suppress
from typing import Optional

import httpx
import redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .agents.action_executor import ActionExecutor
from .agents.assistant_agent import NavigationSink, SessionManager
from .api.chat import router as chat_router
from .cache.redis_client import get_redis_client
from .cache.ttl_cache import run_periodic_sweep
from .config import settings
from .interfaces.data_interface import DataAPI, HttpDataAPI
from .interfaces.knowledge_sync import KnowledgeSynchronizer
from .interfaces.pending_store import PendingActionStore
from .llm.credential_pool import CredentialPool
from .llm.dispatcher import ClientFactory, UpstreamDispatcher

# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    level=settings.LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
           "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def create_app(data_api: Optional[DataAPI] = None,
               credential_pool: Optional[CredentialPool] = None,
               client_factory: Optional[ClientFactory] = None,
               redis_client: Optional[redis.Redis] = None,
               navigation_sink: Optional[NavigationSink] = None,
               sweep_interval: Optional[float] = None) -> FastAPI:
    """
    Build the application. Collaborators default to the configured
    production implementations; tests pass fakes.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler"""
        logger.info("=" * 50)
        logger.info("Starting Ticket Assistant Service")
        logger.info("=" * 50)
        logger.info(f"Environment: {settings.API_ENV}")
        logger.info(f"Generation model: {settings.GENERATION_MODEL}")

        http_client = None
        api = data_api
        if api is None:
            http_client = httpx.AsyncClient(
                base_url=settings.DATA_API_BASE_URL,
                timeout=settings.DATA_API_TIMEOUT,
                headers={"Accept": "application/json"}
            )
            api = HttpDataAPI(client=http_client)

        pool = credential_pool or CredentialPool(settings.api_keys_list)
        logger.info(f"Credential pool: {pool.size} key(s)")

        pending_store = PendingActionStore(
            redis_client if redis_client is not None else get_redis_client()
        )
        synchronizer = KnowledgeSynchronizer(api)
        executor = ActionExecutor(synchronizer, pending_store, UpstreamDispatcher(pool, client_factory))
        manager = SessionManager(executor, synchronizer, navigation_sink=navigation_sink)

        app.state.credential_pool = pool
        app.state.session_manager = manager

        sweeper = asyncio.create_task(
            run_periodic_sweep(manager.caches, sweep_interval or settings.CACHE_SWEEP_INTERVAL)
        )

        yield

        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        if http_client is not None:
            await http_client.aclose()
        logger.info("Ticket Assistant shutdown complete")

    app = FastAPI(
        title="Ticket Assistant Service",
        description="Conversational assistant for the event ticket storefront.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "Ticket Assistant Service",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs",
            "endpoints": [
                "/api/ai/health",
                "/api/ai/chat",
                "/api/ai/sessions/{session_id}",
            ]
        }

    return app


app = create_app()


# ============================================
# Main
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ticket_ai.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development"
    )
