from .api import ForumClient, PostDetailView, VoteTracker
from .auth import AuthService

__all__ = ["AuthService", "ForumClient", "PostDetailView", "VoteTracker"]
