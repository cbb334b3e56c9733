from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workitem_tools.api.workitems import router as workitems_router
from workitem_tools.config import Settings, settings as default_settings
from workitem_tools.core.sessions import SessionRegistry

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, registry: SessionRegistry | None = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    app = FastAPI(title="GitLab Work Item Tools", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    registry = registry or SessionRegistry(
        settings.graphql_endpoint,
        default_headers=settings.auth_headers(),
        timeout=settings.request_timeout,
    )
    workitems_router.registry = registry  # type: ignore[attr-defined]
    workitems_router.settings = settings  # type: ignore[attr-defined]
    app.include_router(workitems_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.on_event("startup")
    async def startup_event():
        if settings.introspect_on_startup:
            session = await registry.get_session()
            snapshot = await session.ensure_introspected()
            logger.info("Startup introspection finished with %s snapshot", snapshot.source)

    return app


app = create_app()
