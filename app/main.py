from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from config.settings import get_settings
from forum.api import ForumClient
from forum.auth import AuthService
from forum.core.session import FileSessionStore


logger = logging.getLogger("notorix")


def _feed_posts(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        return list(data.get("posts") or [])
    if isinstance(data, list):
        return data
    return []


async def show_feed(
    order: str = "hot",
    limit: int = 5,
    client: Optional[httpx.AsyncClient] = None,
) -> int:
    settings = get_settings()
    auth = AuthService(FileSessionStore(settings.session_file), client=client)
    try:
        auth.restore()
        logger.info(
            "Config: api=%s env=%s authenticated=%s",
            settings.api_base_url,
            settings.app_env,
            auth.is_authenticated,
        )
        forum = ForumClient(auth)
        async with forum.feed() as feed:
            if feed.error:
                logger.error("Could not load feed: %s", feed.error)
                return 1
            posts = forum.sort_feed(_feed_posts(feed.data), order)
        logger.info("Feed loaded: %s posts", len(posts))
        for post in posts[:limit]:
            logger.info("  [%s] %s", post.get("id"), post.get("title"))
        return 0
    finally:
        await auth.aclose()


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s - %(message)s",
    )
    raise SystemExit(asyncio.run(show_feed()))


if __name__ == "__main__":
    run()
