"""Schema package exports."""

from .notifications import Notification
from .push_subscriptions import WebPushSubscription
from .sql import Comment, Post, PostLike, User

__all__ = ["Comment", "Notification", "Post", "PostLike", "User", "WebPushSubscription"]
