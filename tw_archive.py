"""Local archive of posts before they are deleted.

Layout: one directory per post, named by its id, holding ``data.json`` (the
status object as returned by the API) and one file per attached media item,
named ``<media id><extension of the media URL>``.
"""

from __future__ import annotations

import json
import os
import posixpath
import urllib.parse
from typing import TYPE_CHECKING

import requests

if TYPE_CHECKING:
    from tw_delete import MediaRef, TweetMeta

DATA_FILE = "data.json"
CHUNK_SIZE = 64 * 1024


class ArchiveError(RuntimeError):
    pass


def media_filename(media: MediaRef) -> str:
    path = urllib.parse.urlparse(media.url).path
    return media.media_id + posixpath.splitext(path)[1]


class NullSaver:
    def save(self, tweet: TweetMeta) -> str | None:
        return None


class FileSaver:
    def __init__(
        self,
        root: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.root = root
        self.session = session or requests.Session()
        self.timeout = timeout

    def save(self, tweet: TweetMeta) -> str:
        os.makedirs(self.root, exist_ok=True)
        tweet_dir = os.path.join(self.root, tweet.id_str)
        # Fails on an existing directory so an earlier archive is never overwritten.
        os.mkdir(tweet_dir, 0o755)

        data_path = os.path.join(tweet_dir, DATA_FILE)
        print(f"[INFO] writing: {data_path}")
        with open(data_path, "w", encoding="utf-8") as fp:
            json.dump(tweet.raw, fp, ensure_ascii=False)

        for media in tweet.media:
            self.download(media, os.path.join(tweet_dir, media_filename(media)))
        return tweet_dir

    def download(self, media: MediaRef, dest: str) -> None:
        print(f"[INFO] writing: {dest}")
        with self.session.get(media.url, stream=True, timeout=self.timeout) as resp:
            if not 200 <= resp.status_code < 300:
                raise ArchiveError(f"GET {media.url} HTTP {resp.status_code}")
            with open(dest, "wb") as fp:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        fp.write(chunk)
