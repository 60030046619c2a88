#!/usr/bin/env python3
"""Delete your own old posts via the X (Twitter) API v1.1.

Pages through the authenticated user's timeline from newest to oldest and
deletes every post older than ``--after``. With ``--save DIR`` each post is
archived (JSON plus attached media) before it is deleted; a post that could
not be archived is never deleted.

Requirements:
- OAuth 1.0a user context: consumer key/secret + access token/secret.

References:
- GET statuses/user_timeline
- POST statuses/destroy/:id
"""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

import requests
import tweepy

from tw_archive import FileSaver, NullSaver

APP_NAME = "tw-delete"
DEFAULT_AFTER = "120h"
MAX_PAGE_SIZE = 200
TWITTER_TIME_FORMAT = "%a %b %d %H:%M:%S %z %Y"

AUTH_FIELDS = ("consumer_key", "consumer_secret", "access_token", "access_secret")
AUTH_ENV = {
    "consumer_key": "TW_DELETE_CONSUMER_KEY",
    "consumer_secret": "TW_DELETE_CONSUMER_SECRET",
    "access_token": "TW_DELETE_ACCESS_TOKEN",
    "access_secret": "TW_DELETE_ACCESS_SECRET",
}
# Keys accepted in the credentials file, per field.
AUTH_FILE_KEYS = {
    "consumer_key": ("consumer_key", "ConsumerKey"),
    "consumer_secret": ("consumer_secret", "ConsumerSecret"),
    "access_token": ("access_token", "AccessToken"),
    "access_secret": ("access_secret", "access_token_secret", "AccessSecret"),
}

# Seconds per unit.
DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 604800.0,
}
# Largest duration representable in int64 nanoseconds (about 292 years).
MAX_DURATION_SECONDS = (2**63 - 1) / 1e9
DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h|d|w)")

HELP_EPILOG = "Note: if --save is not given, posts are deleted without being saved!"


@dataclass
class AuthConfig:
    consumer_key: str
    consumer_secret: str
    access_token: str
    access_secret: str


@dataclass
class MediaRef:
    media_id: str
    url: str


@dataclass
class TweetMeta:
    tweet_id: int
    id_str: str
    created_at: datetime | None
    media: list[MediaRef] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class RunStats:
    pages: int = 0
    considered: int = 0
    expired: int = 0
    kept: int = 0
    archived: int = 0
    unsaved: int = 0
    deleted: int = 0


class Saver(Protocol):
    def save(self, tweet: TweetMeta) -> str | None: ...


class Deleter(Protocol):
    def delete(self, tweet_id: int) -> None: ...


class Timeline(Protocol):
    def fetch_page(self, max_id: int | None, count: int) -> list[TweetMeta]: ...


def default_auth_path() -> str:
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, APP_NAME, "auth")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Delete old posts, optionally saving them first.",
        epilog=HELP_EPILOG,
    )
    p.add_argument(
        "--auth",
        default=default_auth_path(),
        help="Path to file with auth details, TOML or JSON (default: %(default)s).",
    )
    p.add_argument("--consumer-key", help="OAuth consumer (API) key.")
    p.add_argument("--consumer-secret", help="OAuth consumer (API) secret.")
    p.add_argument("--access-token", help="OAuth user access token.")
    p.add_argument("--access-secret", help="OAuth user access token secret.")
    p.add_argument(
        "--after",
        default=DEFAULT_AFTER,
        help="Delete posts older than this duration, e.g. 120h, 90m, 2w (default: %(default)s).",
    )
    p.add_argument("--save", metavar="DIR", help="Directory to save posts to before deleting.")
    p.add_argument("--no-delete", action="store_true", help="Don't delete posts.")
    p.add_argument(
        "--page-size",
        type=int,
        default=MAX_PAGE_SIZE,
        help=f"Posts per timeline page (1..{MAX_PAGE_SIZE}, default: %(default)s).",
    )
    p.add_argument("--timeout", type=float, default=20.0, help="HTTP timeout seconds.")
    return p.parse_args(argv)


def parse_duration(raw: str) -> timedelta:
    """Parse a Go-style duration such as ``120h``, ``1h30m`` or ``1.5d``."""
    text = raw.strip()
    negative = text.startswith("-")
    if text[:1] in ("+", "-"):
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration: {raw!r}")

    seconds = 0.0
    pos = 0
    while pos < len(text):
        m = DURATION_PART_RE.match(text, pos)
        if not m:
            raise ValueError(f"invalid duration: {raw!r}")
        seconds += float(m.group(1)) * DURATION_UNITS[m.group(2)]
        pos = m.end()
    if seconds > MAX_DURATION_SECONDS:
        raise ValueError(f"invalid duration: {raw!r} is out of range")
    if negative and seconds > 0:
        raise ValueError(f"negative duration: {raw!r}")
    return timedelta(seconds=seconds)


def read_auth_file(path: str) -> dict[str, str]:
    with open(path, encoding="utf-8") as fp:
        text = fp.read()

    if text.lstrip().startswith("{"):
        obj = json.loads(text)
    else:
        obj = tomllib.loads(text)
    if not isinstance(obj, dict):
        raise ValueError(f"{path}: expected an object of auth values")

    values: dict[str, str] = {}
    for name, keys in AUTH_FILE_KEYS.items():
        for key in keys:
            if obj.get(key) is not None:
                values[name] = str(obj[key])
                break
    return values


def load_auth(args: argparse.Namespace) -> AuthConfig:
    values: dict[str, str] = {}
    for name in AUTH_FIELDS:
        value = getattr(args, name, None) or os.getenv(AUTH_ENV[name])
        if value:
            values[name] = value

    missing = [name for name in AUTH_FIELDS if name not in values]
    if missing:
        if not os.path.exists(args.auth):
            flags = ", ".join("--" + name.replace("_", "-") for name in missing)
            raise ValueError(f"Missing {flags} and auth file {args.auth} does not exist.")
        try:
            file_values = read_auth_file(args.auth)
        except (OSError, ValueError) as exc:
            raise ValueError(f"Cannot read auth file {args.auth}: {exc}") from exc
        for name in missing:
            if file_values.get(name):
                values[name] = file_values[name]

    missing = [name for name in AUTH_FIELDS if not values.get(name, "").strip()]
    if missing:
        raise ValueError(f"Missing auth values: {', '.join(missing)}")
    return AuthConfig(**{name: values[name].strip() for name in AUTH_FIELDS})


def parse_twitter_created_at(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        dt = datetime.strptime(raw.strip(), TWITTER_TIME_FORMAT)
    except ValueError:
        return None
    return dt.astimezone(timezone.utc)


def extract_media(raw: dict[str, Any]) -> list[MediaRef]:
    media: list[Any] = []
    for key in ("extended_entities", "entities"):
        entities = raw.get(key)
        if isinstance(entities, dict) and isinstance(entities.get("media"), list):
            media = entities["media"]
            break

    refs: list[MediaRef] = []
    for item in media:
        if not isinstance(item, dict):
            continue
        media_id = str(item.get("id_str") or item.get("id") or "").strip()
        url = str(item.get("media_url_https") or item.get("media_url") or "").strip()
        if media_id and url:
            refs.append(MediaRef(media_id=media_id, url=url))
    return refs


def parse_tweet(raw: Any) -> TweetMeta | None:
    if not isinstance(raw, dict):
        return None
    id_str = str(raw.get("id_str") or raw.get("id") or "").strip()
    if not id_str.isdigit():
        return None
    return TweetMeta(
        tweet_id=int(id_str),
        id_str=id_str,
        created_at=parse_twitter_created_at(raw.get("created_at")),
        media=extract_media(raw),
        raw=raw,
    )


def build_api(auth: AuthConfig, timeout: float) -> tweepy.API:
    handler = tweepy.OAuth1UserHandler(
        auth.consumer_key,
        auth.consumer_secret,
        auth.access_token,
        auth.access_secret,
    )
    return tweepy.API(handler, parser=tweepy.parsers.JSONParser(), timeout=timeout)


class TwitterTimeline:
    """User timeline and delete calls of the authenticated account."""

    def __init__(self, api: tweepy.API) -> None:
        self.api = api

    def verify(self) -> str:
        me = self.api.verify_credentials(skip_status=True)
        if not isinstance(me, dict) or not me.get("screen_name"):
            raise ValueError("Invalid account/verify_credentials response")
        return str(me["screen_name"])

    def fetch_page(self, max_id: int | None, count: int) -> list[TweetMeta]:
        items = self.api.user_timeline(
            count=count,
            max_id=max_id,
            include_rts=True,
            tweet_mode="extended",
        )
        if not isinstance(items, list):
            raise ValueError("Invalid statuses/user_timeline response")
        tweets = []
        for item in items:
            tweet = parse_tweet(item)
            if tweet is not None:
                tweets.append(tweet)
        return tweets

    def delete(self, tweet_id: int) -> None:
        self.api.destroy_status(tweet_id)


class NoopDeleter:
    def delete(self, tweet_id: int) -> None:
        print(f"[NO-DELETE] {tweet_id} left in place")


def format_ts(dt: datetime | None) -> str:
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def should_delete(tweet: TweetMeta, *, threshold: timedelta, now: datetime) -> tuple[bool, str]:
    if tweet.created_at is None:
        return False, "missing created_at"
    if now - tweet.created_at > threshold:
        return True, "expired"
    return False, "too recent"


def next_max_id(page: list[TweetMeta]) -> int:
    # max_id is inclusive on the API side.
    return min(t.tweet_id for t in page) - 1


def process_tweet(
    tweet: TweetMeta,
    *,
    saver: Saver,
    deleter: Deleter,
    stats: RunStats,
) -> bool:
    """Save then delete one expired post. Returns False when it was left in place."""
    try:
        location = saver.save(tweet)
    except (OSError, ValueError, RuntimeError, requests.RequestException) as exc:
        stats.unsaved += 1
        print(f"[WARN] {tweet.id_str} | save failed, not deleting: {exc}")
        return False
    if location:
        stats.archived += 1
        print(f"[SAVED] {tweet.id_str} -> {location}")

    deleter.delete(tweet.tweet_id)
    stats.deleted += 1
    print(f"[DELETED] {tweet.id_str} | {format_ts(tweet.created_at)}")
    return True


def run(
    timeline: Timeline,
    *,
    deleter: Deleter,
    saver: Saver,
    threshold: timedelta,
    page_size: int = MAX_PAGE_SIZE,
    now: Callable[[], datetime] | None = None,
    stats: RunStats | None = None,
) -> RunStats:
    clock = now or (lambda: datetime.now(timezone.utc))
    if stats is None:
        stats = RunStats()
    max_id: int | None = None

    while True:
        print(f"[INFO] Getting timeline page (max_id={max_id if max_id is not None else '-'})")
        page = timeline.fetch_page(max_id, page_size)
        if not page:
            break
        stats.pages += 1

        for tweet in page:
            stats.considered += 1
            ok, reason = should_delete(tweet, threshold=threshold, now=clock())
            if not ok:
                stats.kept += 1
                print(f"[KEEP] {tweet.id_str} | {format_ts(tweet.created_at)} | {reason}")
                continue
            stats.expired += 1
            process_tweet(tweet, saver=saver, deleter=deleter, stats=stats)

        max_id = next_max_id(page)

    return stats


def print_summary(stats: RunStats) -> None:
    print("")
    print("========== SUMMARY ==========")
    print(f"pages      : {stats.pages}")
    print(f"considered : {stats.considered}")
    print(f"expired    : {stats.expired}")
    print(f"kept       : {stats.kept}")
    print(f"archived   : {stats.archived}")
    print(f"unsaved    : {stats.unsaved}")
    print(f"deleted    : {stats.deleted}")


def main(argv: list[str] | None = None, now: Callable[[], datetime] | None = None) -> int:
    args = parse_args(argv)

    try:
        threshold = parse_duration(args.after)
    except ValueError as exc:
        print(f"[ERROR] Bad --after: {exc}", file=sys.stderr)
        return 2
    if not 1 <= args.page_size <= MAX_PAGE_SIZE:
        print(f"[ERROR] --page-size must be within 1..{MAX_PAGE_SIZE}", file=sys.stderr)
        return 2

    try:
        auth = load_auth(args)
    except ValueError as exc:
        print(f"[ERROR] Failed to load auth: {exc}", file=sys.stderr)
        return 2

    timeline = TwitterTimeline(build_api(auth, args.timeout))
    try:
        screen_name = timeline.verify()
    except (tweepy.TweepyException, ValueError) as exc:
        print(f"[ERROR] Failed to verify credentials: {exc}", file=sys.stderr)
        return 2

    saver: Saver = NullSaver()
    if args.save:
        saver = FileSaver(args.save, timeout=args.timeout)
    deleter: Deleter = NoopDeleter() if args.no_delete else timeline

    print(f"[INFO] Authenticated user: @{screen_name}")
    print(f"[INFO] Mode: {'NO-DELETE' if args.no_delete else 'DELETE'}")
    print(f"[INFO] Deleting posts older than {threshold}")
    if args.save:
        print(f"[INFO] Saving posts to {args.save}")
    else:
        print("[WARN] --save not given, posts will not be saved")

    stats = RunStats()
    try:
        run(
            timeline,
            deleter=deleter,
            saver=saver,
            threshold=threshold,
            page_size=args.page_size,
            now=now,
            stats=stats,
        )
    except (tweepy.TweepyException, ValueError) as exc:
        print_summary(stats)
        print(f"[ERROR] Run aborted: {exc}", file=sys.stderr)
        return 2

    print_summary(stats)
    return 0 if stats.unsaved == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
