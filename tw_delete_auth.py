#!/usr/bin/env python3
"""Get X OAuth 1.0a user tokens (PIN flow) and save them for tw-delete."""

from __future__ import annotations

import argparse
import json
import os
import sys
import webbrowser
from datetime import datetime, timezone
from typing import Any

import tweepy

from tw_delete import AuthConfig, default_auth_path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fetch X OAuth 1.0a user tokens and save an auth file.")
    p.add_argument("--consumer-key", required=True, help="X App API key")
    p.add_argument("--consumer-secret", required=True, help="X App API key secret")
    p.add_argument(
        "--auth-file",
        default=default_auth_path(),
        help="Output auth file path (default: %(default)s)",
    )
    p.add_argument("--no-browser", action="store_true", help="Do not auto-open browser")
    return p.parse_args(argv)


def save_auth(auth_file: str, auth: AuthConfig) -> None:
    current: dict[str, Any] = {}
    if os.path.exists(auth_file):
        # A TOML or otherwise unparsable file is replaced by the JSON layout.
        try:
            with open(auth_file, encoding="utf-8") as fp:
                loaded = json.load(fp)
            if isinstance(loaded, dict):
                current = loaded
        except ValueError:
            current = {}

    out = dict(current)
    out["consumer_key"] = auth.consumer_key
    out["consumer_secret"] = auth.consumer_secret
    out["access_token"] = auth.access_token
    out["access_secret"] = auth.access_secret
    out["obtained_at"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    parent = os.path.dirname(auth_file)
    if parent:
        os.makedirs(parent, exist_ok=True)
    fd = os.open(auth_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fp:
        os.fchmod(fp.fileno(), 0o600)
        json.dump(out, fp, ensure_ascii=False, indent=2)
        fp.write("\n")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    handler = tweepy.OAuth1UserHandler(args.consumer_key, args.consumer_secret, callback="oob")
    try:
        auth_url = handler.get_authorization_url()
    except tweepy.TweepyException as exc:
        print(f"[ERROR] Failed to get request token: {exc}", file=sys.stderr)
        return 2

    print("[INFO] Open this URL and authorize the app:")
    print(auth_url)
    if not args.no_browser:
        webbrowser.open(auth_url)

    try:
        print("[INPUT] Paste the PIN shown after authorizing:")
        pin = input("> ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\n[ERROR] Cancelled.", file=sys.stderr)
        return 2
    if not pin:
        print("[ERROR] PIN is empty", file=sys.stderr)
        return 2

    try:
        access_token, access_secret = handler.get_access_token(pin)
    except tweepy.TweepyException as exc:
        print(f"[ERROR] Token exchange failed: {exc}", file=sys.stderr)
        return 2

    auth = AuthConfig(
        consumer_key=args.consumer_key,
        consumer_secret=args.consumer_secret,
        access_token=access_token,
        access_secret=access_secret,
    )
    try:
        save_auth(args.auth_file, auth)
    except (OSError, ValueError) as exc:
        print(f"[ERROR] Failed saving auth file: {exc}", file=sys.stderr)
        return 2

    print(f"[INFO] Saved auth details to {args.auth_file}")
    if args.auth_file != default_auth_path():
        print(f"[INFO] Run: tw-delete --auth {args.auth_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
