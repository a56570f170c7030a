import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gatekeeper.api.routers import permissions, roles, user_permissions
from gatekeeper.api.schemas.common import (
    AuthErrorResponse,
    ErrorResponse,
    PermissionDeniedResponse,
    RoleDeniedResponse,
)
from gatekeeper.common import setup_logger
from gatekeeper.core.config import get_settings
from gatekeeper.core.errors import (
    AuthenticationRequiredError,
    GatekeeperError,
    PermissionCheckError,
    PermissionDeniedError,
    RoleDeniedError,
)

settings = get_settings()

setup_logger(
    "gatekeeper",
    log_dir=settings.log_dir,
    level=settings.log_level,
    file_logging=settings.log_to_file,
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Role-based access control with per-user permission overrides",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthenticationRequiredError)
async def authentication_required_handler(request: Request, exc: AuthenticationRequiredError):
    body = AuthErrorResponse(error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(),
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    body = PermissionDeniedResponse(message=exc.message, requiredPermissions=exc.required_permissions)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(by_alias=True))


@app.exception_handler(RoleDeniedError)
async def role_denied_handler(request: Request, exc: RoleDeniedError):
    body = RoleDeniedResponse(message=exc.message, requiredRoles=exc.required_roles)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(by_alias=True))


@app.exception_handler(PermissionCheckError)
async def permission_check_error_handler(request: Request, exc: PermissionCheckError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(),
    )


@app.exception_handler(GatekeeperError)
async def gatekeeper_error_handler(request: Request, exc: GatekeeperError):
    if exc.status_code >= 500:
        logger.error("Request failed: %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(),
    )


# Include routers
app.include_router(roles.router, prefix="/api")
app.include_router(permissions.router, prefix="/api")
app.include_router(user_permissions.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else None,
    }
