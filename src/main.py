"""Agent Playground backend - FastAPI application factory.

Wires the conversation engine (chat client factory, tool invoker,
orchestrator, chat service) onto `app.state` and exposes the passthrough
proxy used by browser-side tool calls.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from api.controllers import proxy_router
from application.generators import TitleGenerator
from application.services import ChatService, ConversationOrchestrator, ModelAvailability, ToolInvoker, configure_logging
from application.settings import Settings, app_settings
from infrastructure import ChatClientFactory, InMemoryPlaygroundRepository

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """FastAPI application factory."""
    settings = settings or app_settings
    configure_logging(
        level=settings.log_level,
        to_file=settings.log_to_file,
        filename=settings.log_filename,
        quiet_libraries=settings.log_libraries,
        quiet_level=settings.log_libraries_level,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 {settings.app_name} v{settings.app_version} starting up...")
        http_client = httpx.AsyncClient(timeout=settings.proxy_timeout)
        client_factory = ChatClientFactory(timeout=settings.provider_timeout)
        tool_invoker = ToolInvoker(http_client=http_client, timeout=settings.tool_timeout, proxy_url=settings.proxy_url)
        orchestrator = ConversationOrchestrator(
            client_factory,
            tool_invoker,
            max_iterations=settings.max_iterations,
            max_parallel_tool_calls=settings.max_parallel_tool_calls,
            tool_finish_reasons=settings.tool_finish_reasons,
        )
        repository = InMemoryPlaygroundRepository()

        app.state.http_client = http_client
        app.state.repository = repository
        app.state.orchestrator = orchestrator
        app.state.chat_service = ChatService(repository, orchestrator, TitleGenerator(client_factory, settings.title_max_length))
        app.state.model_availability = ModelAvailability()
        logger.info("✅ Conversation engine configured")

        yield

        await http_client.aclose()
        logger.info(f"{settings.app_name} shutting down...")

    app = FastAPI(
        title=settings.app_name,
        description="Backend for the agent playground: conversation engine and passthrough proxy.",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(proxy_router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "healthy", "service": settings.app_name, "version": settings.app_version}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=app_settings.debug,
    )
