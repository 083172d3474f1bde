from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from nivora.api.routes import notifications, posts, push
from nivora.config import get_settings
from nivora.core.exceptions import global_exception_handler, http_exception_handler, persistence_failure_handler, post_not_found_handler, post_ownership_handler, request_validation_exception_handler
from nivora.core.lifespan import lifespan
from nivora.core.middleware import RequestLoggingMiddleware
from nivora.services.engagement import PersistenceFailure, PostNotFound, PostOwnershipError

settings = get_settings()

app = FastAPI(title="Nivora", lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(PersistenceFailure, persistence_failure_handler)
app.add_exception_handler(PostNotFound, post_not_found_handler)
app.add_exception_handler(PostOwnershipError, post_ownership_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(posts.router, prefix="/v1", tags=["posts"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["notifications"])
app.include_router(push.router, prefix="/v1/push", tags=["push"])
