from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import tweepy

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def twitter_time(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%a %b %d %H:%M:%S +0000 %Y")


def make_status(tweet_id: int, age: timedelta, media: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "id": tweet_id,
        "id_str": str(tweet_id),
        "created_at": twitter_time(NOW - age),
        "full_text": f"post {tweet_id}",
    }
    if media:
        raw["entities"] = {"media": media[:1]}
        raw["extended_entities"] = {"media": media}
    return raw


class FakeAPI:
    """In-memory stand-in for tweepy.API with a JSON parser."""

    def __init__(self, statuses: list[dict[str, Any]], screen_name: str = "someone") -> None:
        self.statuses = sorted(statuses, key=lambda s: s["id"], reverse=True)
        self.screen_name = screen_name
        self.timeline_calls: list[dict[str, Any]] = []
        self.destroyed: list[int] = []
        self.fail_destroy: set[int] = set()
        self.fail_timeline = False

    def verify_credentials(self, **kwargs: Any) -> dict[str, Any]:
        return {"id_str": "1", "screen_name": self.screen_name}

    def user_timeline(self, *, count: int, max_id: int | None = None, **kwargs: Any) -> list[dict[str, Any]]:
        self.timeline_calls.append({"count": count, "max_id": max_id, **kwargs})
        if self.fail_timeline:
            raise tweepy.TweepyException("timeline unavailable")
        items = [s for s in self.statuses if max_id is None or s["id"] <= max_id]
        return items[:count]

    def destroy_status(self, tweet_id: int) -> dict[str, Any]:
        if tweet_id in self.fail_destroy:
            raise tweepy.TweepyException(f"destroy {tweet_id} failed")
        self.destroyed.append(tweet_id)
        status = next(s for s in self.statuses if s["id"] == tweet_id)
        self.statuses.remove(status)
        return status


@pytest.fixture(autouse=True)
def clean_auth_env(monkeypatch, tmp_path):
    for name in (
        "TW_DELETE_CONSUMER_KEY",
        "TW_DELETE_CONSUMER_SECRET",
        "TW_DELETE_ACCESS_TOKEN",
        "TW_DELETE_ACCESS_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
