# FastAPI entrypoint: permission storage, cache, ability builder and guard wired at startup

from typing import Optional

import dotenv
from fastapi import FastAPI
from fastapi.routing import APIRoute
from loguru import logger

from access_control.ability_builder import AbilityBuilder
from access_control.config import AccessControlConfig
from access_control.guard import AuthorizationGuard
from access_control.permission_cache import PermissionCache
from auth.principal_middleware import PrincipalMiddleware, resolve_request_principal
from permissions.database import DatabaseConfig, DatabaseManager
from permissions.permission_routes import router as permission_router
from permissions.service import PermissionService

dotenv.load_dotenv()


def create_app(
    config: Optional[AccessControlConfig] = None,
    db_manager: Optional[DatabaseManager] = None,
) -> FastAPI:
    """
    Build the API with explicitly constructed collaborators.

    The permission cache is owned by the app: its sweeper starts on
    startup and stops on shutdown.
    """
    config = config or AccessControlConfig()
    db_manager = db_manager or DatabaseManager(DatabaseConfig())

    cache = PermissionCache(ttl=config.cache_ttl, sweep_interval=config.sweep_interval)
    permission_service = PermissionService(db_manager, cache)
    ability_builder = AbilityBuilder(permission_service, cache)
    guard = AuthorizationGuard(ability_builder, resolve_request_principal)

    app = FastAPI(
        title="Access Control API",
        description="Role and attribute based access control",
        version="1.0.0"
    )

    app.state.config = config
    app.state.db_manager = db_manager
    app.state.permission_cache = cache
    app.state.permission_service = permission_service
    app.state.ability_builder = ability_builder
    app.state.guard = guard

    # ==================== MIDDLEWARE ====================

    app.add_middleware(
        PrincipalMiddleware,
        secret=config.jwt_secret,
        algorithm=config.jwt_algorithm
    )

    # ==================== ROUTERS ====================

    app.include_router(permission_router)   # /api/permissions

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint for monitoring system status."""
        database_ok = db_manager.health_check()
        return {
            "status": "healthy" if database_ok else "unhealthy",
            "database": database_ok,
            "permission_cache": cache.stats(),
        }

    @app.get("/")
    async def root():
        """Root endpoint that returns API information and routes."""
        routes = [
            {
                "path": route.path,
                "name": route.name,
                "methods": sorted(route.methods - {"HEAD", "OPTIONS"})
            }
            for route in app.routes
            if isinstance(route, APIRoute)
        ]
        return {"message": "Access Control API", "version": app.version, "routes": routes}

    # ==================== STARTUP / SHUTDOWN ====================

    @app.on_event("startup")
    async def startup_event():
        logger.info("Initializing permission database...")
        db_manager.create_tables()
        logger.info("✓ Permission database initialized")

        if config.sweeper_enabled:
            cache.start_sweeper()

    @app.on_event("shutdown")
    async def shutdown_event():
        cache.stop_sweeper()
        logger.info("✓ Permission cache sweeper stopped")

    return app


app = create_app()


def main():
    import uvicorn
    uvicorn.run("apps.api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
