"""Forum node orchestration."""

from .node import ForumNode

__all__ = ["ForumNode"]
