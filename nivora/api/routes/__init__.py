from . import notifications, posts, push

__all__ = ["notifications", "posts", "push"]
