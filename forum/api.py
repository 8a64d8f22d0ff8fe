from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional, Type, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from forum.auth import AuthService
from forum.core.errors import AuthenticationRequired
from forum.core.executor import RequestExecutor, Result, post_executor


POSTS_PATH = "/api/posts"


class NewPost(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=5, max_length=200)
    content: str = Field(..., min_length=10)
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    is_published: bool = Field(True, alias="isPublished")

    @model_validator(mode="before")
    @classmethod
    def _split_tags(cls, values):
        if isinstance(values, dict) and isinstance(values.get("tags"), str):
            values = dict(values)
            values["tags"] = [tag.strip() for tag in values["tags"].split(",") if tag.strip()]
        return values


class NewComment(BaseModel):
    content: str = Field(..., min_length=2)

    @model_validator(mode="before")
    @classmethod
    def _strip_content(cls, values):
        if isinstance(values, dict) and isinstance(values.get("content"), str):
            values = {**values, "content": values["content"].strip()}
        return values


class Reaction(BaseModel):
    type: Literal["like", "dislike"]


def _payload(model: Type[BaseModel], data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    try:
        parsed = data if isinstance(data, model) else model.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid input for {model.__name__}: {exc}") from exc
    return parsed.model_dump(by_alias=True)


def _timestamp(value: Any) -> float:
    if not value:
        return 0.0
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def vote_count(post: Dict[str, Any], user_votes: Optional[Dict[Any, str]] = None) -> int:
    base = (post.get("upvotes") or 0) - (post.get("downvotes") or 0)
    vote = (user_votes or {}).get(post.get("id"))
    if vote == "upvote":
        return base + 1
    if vote == "downvote":
        return base - 1
    return base


def sort_posts(
    posts: List[Dict[str, Any]],
    order: str = "hot",
    user_votes: Optional[Dict[Any, str]] = None,
) -> List[Dict[str, Any]]:
    keys: Dict[str, Callable[[Dict[str, Any]], Any]] = {
        "hot": lambda post: vote_count(post, user_votes),
        "new": lambda post: _timestamp(post.get("createdAt")),
        "top": lambda post: vote_count(post),
        "rising": lambda post: post.get("commentCount") or 0,
    }
    key = keys.get(order)
    if key is None:
        return list(posts)
    return sorted(posts, key=key, reverse=True)


def sort_comments(comments: List[Dict[str, Any]], order: str = "newest") -> List[Dict[str, Any]]:
    if order == "newest":
        return sorted(comments, key=lambda c: _timestamp(c.get("createdAt")), reverse=True)
    if order == "oldest":
        return sorted(comments, key=lambda c: _timestamp(c.get("createdAt")))
    if order == "likes":
        return sorted(comments, key=lambda c: c.get("likes") or 0, reverse=True)
    return list(comments)


class VoteTracker:
    """The signed-in user's own up/down votes, kept client side per post."""

    VOTES = ("upvote", "downvote")

    def __init__(self, auth: AuthService) -> None:
        self.auth = auth
        self._votes: Dict[Any, str] = {}

    @property
    def votes(self) -> Dict[Any, str]:
        return dict(self._votes)

    def get(self, post_id: Any) -> Optional[str]:
        return self._votes.get(post_id)

    def toggle(self, post_id: Any, vote: str) -> Result:
        """Repeating a vote removes it; the opposite vote replaces it."""
        if vote not in self.VOTES:
            raise ValueError(f"Unknown vote {vote!r}; expected one of {self.VOTES}")
        if not self.auth.is_authenticated:
            return Result.failure(AuthenticationRequired("Please login to vote"))
        if self._votes.get(post_id) == vote:
            del self._votes[post_id]
        else:
            self._votes[post_id] = vote
        return Result.ok(self._votes.get(post_id))

    def clear(self) -> None:
        self._votes.clear()


class ForumClient:
    """Builds executors for the forum endpoints and issues authenticated writes."""

    def __init__(
        self,
        auth: AuthService,
        *,
        client: Optional[httpx.AsyncClient] = None,
        cache_ttl: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.auth = auth
        self._client = client or auth.client
        self._cache_ttl = cache_ttl
        self._clock = clock
        self.votes = VoteTracker(auth)

    def _options(self) -> Dict[str, Any]:
        headers = self.auth.auth_headers()
        return {"headers": headers} if headers else {}

    def _reader(self, endpoint: str, immediate: bool) -> RequestExecutor:
        return RequestExecutor(
            endpoint,
            self._options(),
            immediate=immediate,
            cache_ttl=self._cache_ttl,
            client=self._client,
            clock=self._clock,
        )

    def feed(self, immediate: bool = True) -> RequestExecutor:
        return self._reader(POSTS_PATH, immediate)

    def post(self, post_id: Any, immediate: bool = True) -> RequestExecutor:
        return self._reader(f"{POSTS_PATH}/{post_id}", immediate)

    def comments(self, post_id: Any, immediate: bool = True) -> RequestExecutor:
        return self._reader(f"{POSTS_PATH}/{post_id}/comments", immediate)

    async def create_post(self, data: Union[NewPost, Dict[str, Any]]) -> Result:
        return await self._write(POSTS_PATH, _payload(NewPost, data))

    async def add_comment(self, post_id: Any, content: str) -> Result:
        if not self.auth.is_authenticated:
            return Result.failure(AuthenticationRequired())
        body = _payload(NewComment, {"content": content})
        return await self._write(f"{POSTS_PATH}/{post_id}/comments", body)

    async def react(self, post_id: Any, reaction: str) -> Result:
        if not self.auth.is_authenticated:
            return Result.failure(AuthenticationRequired())
        body = _payload(Reaction, {"type": reaction})
        return await self._write(f"{POSTS_PATH}/{post_id}/reactions", body)

    def toggle_vote(self, post_id: Any, vote: str) -> Result:
        return self.votes.toggle(post_id, vote)

    def sort_feed(self, posts: List[Dict[str, Any]], order: str = "hot") -> List[Dict[str, Any]]:
        return sort_posts(posts, order, self.votes.votes)

    async def _write(self, endpoint: str, body: Dict[str, Any]) -> Result:
        executor = post_executor(endpoint, self._options(), client=self._client)
        try:
            return await executor.send(body)
        finally:
            await executor.aclose()


class PostDetailView:
    """One post with its comments; each binding owns its own executor."""

    def __init__(self, forum: ForumClient, post_id: Any, comment_order: str = "newest") -> None:
        self.forum = forum
        self.post_id = post_id
        self.comment_order = comment_order
        self.post = forum.post(post_id)
        self.comment_list = forum.comments(post_id)

    async def __aenter__(self) -> "PostDetailView":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def start(self) -> None:
        await asyncio.gather(self.post.start(), self.comment_list.start())

    @property
    def comments(self) -> List[Dict[str, Any]]:
        data = self.comment_list.data
        items = data.get("comments") if isinstance(data, dict) else None
        return sort_comments(items or [], self.comment_order)

    async def add_comment(self, content: str) -> Result:
        result = await self.forum.add_comment(self.post_id, content)
        if result.success:
            await self.comment_list.refetch()
        return result

    async def react(self, reaction: str) -> Result:
        result = await self.forum.react(self.post_id, reaction)
        if result.success:
            await self.post.refetch()
        return result

    async def aclose(self) -> None:
        await self.post.aclose()
        await self.comment_list.aclose()
