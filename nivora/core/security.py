from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from nivora.core.database import get_db
from nivora.core.firebase import verify_id_token
from nivora.schema.sql import User
from nivora.services.users import get_user_by_firebase_uid

security_scheme = HTTPBearer()


async def get_current_user(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)], db: AsyncSession = Depends(get_db)) -> User:  # noqa: B008
  """Verify the Firebase ID token and resolve the matching user row."""
  # Token verification does blocking network I/O on key refresh.
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  firebase_uid = decoded_claims.get("uid")
  if not firebase_uid:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

  user = await get_user_by_firebase_uid(db, firebase_uid)
  if not user:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

  return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:  # noqa: B008
  """Block deactivated accounts from protected routes."""
  if not current_user.is_active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

  return current_user
