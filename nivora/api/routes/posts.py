"""Routes for posts, likes and comments, plus the cached feed views."""

from __future__ import annotations

import uuid
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError
from sqlalchemy.ext.asyncio import AsyncSession

from nivora.api.deps import get_db_session, get_fanout_context, get_feed_service
from nivora.core.security import get_current_active_user
from nivora.fanout.context import FanoutContext
from nivora.schema.sql import User
from nivora.services.engagement import PostNotFound, add_comment, count_likes, create_post, delete_post, toggle_like, update_post
from nivora.services.feeds import FeedService, PostSnapshot, liked_post_ids, load_post, with_viewer_state

router = APIRouter()

MAX_PAGE_SIZE = 50


class CreatePostRequest(BaseModel):
  media_url: str = Field(min_length=1, max_length=2048, alias="mediaUrl")
  media_type: Literal["image", "video"] = Field(default="image", alias="mediaType")
  caption: str | None = Field(default=None, max_length=2200)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class UpdatePostRequest(BaseModel):
  caption: str | None = Field(default=None, max_length=2200)
  model_config = ConfigDict(extra="forbid")


class CommentRequest(BaseModel):
  text: str = Field(min_length=1, max_length=1000)
  model_config = ConfigDict(extra="forbid")

  @field_validator("text")
  @classmethod
  def validate_text(cls, value: str) -> str:
    normalized = value.strip()
    if not normalized:
      raise PydanticCustomError("comment_blank", "Comment text must not be blank.")
    return normalized


class LikeResponse(BaseModel):
  liked: bool
  likes_count: int


async def _with_viewer(session: AsyncSession, viewer: User, posts: list[PostSnapshot]) -> list[PostSnapshot]:
  liked = await liked_post_ids(session, viewer_id=viewer.id, post_ids=[post["id"] for post in posts])
  return with_viewer_state(posts, liked)


@router.post("/posts", status_code=status.HTTP_201_CREATED)
async def create_post_route(
  payload: CreatePostRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> dict[str, Any]:
  """Create a post and refresh the feeds that would show it."""
  event = await create_post(session, actor=current_user, media_url=payload.media_url, media_type=payload.media_type, caption=payload.caption)
  context.coordinator.publish(event)
  # Read straight from the database; the cache entry may be mid-invalidation.
  post = await load_post(session, event.post_id)
  if post is None:
    raise PostNotFound(str(event.post_id))
  return with_viewer_state([post], set())[0]


@router.get("/posts/feed")
async def get_feed(
  page: int = Query(1, ge=1),  # noqa: B008
  limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),  # noqa: B008
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  feeds: FeedService = Depends(get_feed_service),  # noqa: B008
) -> list[dict[str, Any]]:
  """Newest posts across all authors."""
  posts = await feeds.feed(session, page=page, limit=limit)
  return await _with_viewer(session, current_user, posts)


@router.get("/posts/explore")
async def get_explore(
  page: int = Query(1, ge=1),  # noqa: B008
  limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),  # noqa: B008
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  feeds: FeedService = Depends(get_feed_service),  # noqa: B008
) -> list[dict[str, Any]]:
  """Most-liked posts, the same for every viewer apart from `is_liked`."""
  posts = await feeds.explore(session, page=page, limit=limit)
  return await _with_viewer(session, current_user, posts)


@router.get("/users/{user_id}/posts")
async def get_user_posts(
  user_id: uuid.UUID,
  page: int = Query(1, ge=1),  # noqa: B008
  limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),  # noqa: B008
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  feeds: FeedService = Depends(get_feed_service),  # noqa: B008
) -> list[dict[str, Any]]:
  posts = await feeds.user_feed(session, author_id=user_id, page=page, limit=limit)
  return await _with_viewer(session, current_user, posts)


@router.get("/posts/{post_id}")
async def get_post(
  post_id: uuid.UUID,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  feeds: FeedService = Depends(get_feed_service),  # noqa: B008
) -> dict[str, Any]:
  post = await feeds.post(session, post_id)
  if post is None:
    raise PostNotFound(str(post_id))
  return (await _with_viewer(session, current_user, [post]))[0]


@router.patch("/posts/{post_id}")
async def update_post_route(
  post_id: uuid.UUID,
  payload: UpdatePostRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> dict[str, Any]:
  """Edit the caption of a post owned by the caller."""
  event = await update_post(session, actor=current_user, post_id=post_id, caption=payload.caption)
  context.coordinator.publish(event)
  post = await load_post(session, post_id)
  if post is None:
    raise PostNotFound(str(post_id))
  return (await _with_viewer(session, current_user, [post]))[0]


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_route(
  post_id: uuid.UUID,
  response: Response,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> Response:
  event = await delete_post(session, actor=current_user, post_id=post_id)
  context.coordinator.publish(event)
  response.status_code = status.HTTP_204_NO_CONTENT
  return response


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def toggle_like_route(
  post_id: uuid.UUID,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> LikeResponse:
  """Like the post, or unlike it when the caller already does."""
  liked, event = await toggle_like(session, actor=current_user, post_id=post_id)
  if event is not None:
    context.coordinator.publish(event)
  return LikeResponse(liked=liked, likes_count=await count_likes(session, post_id))


@router.post("/posts/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment_route(
  post_id: uuid.UUID,
  payload: CommentRequest,
  current_user: User = Depends(get_current_active_user),  # noqa: B008
  session: AsyncSession = Depends(get_db_session),  # noqa: B008
  context: FanoutContext = Depends(get_fanout_context),  # noqa: B008
) -> dict[str, Any]:
  comment_id, event = await add_comment(session, actor=current_user, post_id=post_id, text=payload.text)
  context.coordinator.publish(event)
  return {"id": str(comment_id), "post_id": str(post_id), "text": payload.text, "author": {"id": str(current_user.id), "username": current_user.username, "profile_pic_url": current_user.profile_pic_url}}
