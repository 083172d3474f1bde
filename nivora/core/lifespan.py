import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from nivora.config import get_settings
from nivora.core.database import dispose_db_engine
from nivora.core.firebase import initialize_firebase
from nivora.core.logging import initialize_logging
from nivora.fanout.context import build_fanout_context


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, auth and the fan-out engine; tear them down in reverse on shutdown."""
  settings = get_settings()
  logger = logging.getLogger("nivora.core.lifespan")

  try:
    initialize_logging(settings)
    initialize_firebase()
  except Exception:
    # Auth and logging problems surface per request; do not block startup.
    logger.warning("Startup initialization incomplete.", exc_info=True)

  # Tests may preinstall a context wired to fakes.
  owns_context = getattr(app.state, "fanout", None) is None
  if owns_context:
    app.state.fanout = build_fanout_context(settings)

  logger.info("Startup complete environment=%s", settings.environment)
  try:
    yield
  finally:
    if owns_context:
      await app.state.fanout.aclose()
      app.state.fanout = None
    await dispose_db_engine()
    logger.info("Shutdown complete.")
