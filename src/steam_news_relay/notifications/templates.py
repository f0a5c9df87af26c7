"""
Notification templates.

Formatting of every push message the service sends lives here.
"""

from steam_news_relay.contracts.news import NewsItem
from steam_news_relay.contracts.notifications import Notification

NEWS_TYPE = "news"
AUTO_FOLLOW_TYPE = "auto_follow"


def build_news_notification(
    game_id: str,
    item: NewsItem,
    game_name: str | None = None,
) -> Notification:
    """
    Build the push message for one news item.

    The payload carries what the app needs to deep-link to the item.
    """
    return Notification(
        title=f"{game_name} - New update" if game_name else "New game update",
        body=item.title,
        payload={
            "type": NEWS_TYPE,
            "game_id": game_id,
            "news_id": item.id,
            "url": item.url,
        },
    )


def build_auto_follow_notification(game_id: str, game_name: str) -> Notification:
    """Build the message sent when a game was followed automatically."""
    return Notification(
        title="New game followed automatically",
        body=f"{game_name} was added to your followed games",
        payload={
            "type": AUTO_FOLLOW_TYPE,
            "game_id": game_id,
        },
    )
