"""
fetcher.py
HTTP access for pie: the repository index and package artifacts.

- One requests.Session per invocation
- Explicit (connect, read) timeouts from the 'fetch' config section
- Artifact downloads streamed in chunks with a tqdm progress bar on stderr
- No retries: any failure surfaces as NetworkFailure
"""

from __future__ import annotations
import sys
from typing import Any, Dict, Optional

import requests
from tqdm import tqdm

from .config import Config
from .errors import IndexFormatError, NetworkFailure
from .log import get_logger

logger = get_logger(__name__)


class RepoFetcher:
    def __init__(self, cfg: Config, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.timeout = cfg.timeouts
        self.chunk_size = cfg.get('fetch', 'chunk_size', default=65536)
        self.progress = bool(cfg.get('fetch', 'progress', default=True))

    def fetch_index(self) -> Dict[str, Any]:
        url = self.cfg.repo_url
        logger.info("Fetching index %s", url)
        try:
            r = self.session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise NetworkFailure(f"Failed to fetch repository index {url}: {e}") from e
        try:
            return r.json()
        except ValueError as e:
            raise IndexFormatError(f"Repository index at {url} is not valid JSON: {e}") from e

    def download(self, url: str, label: Optional[str] = None) -> bytes:
        """Download an artifact fully into memory."""
        logger.info("Downloading %s", url)
        buf = bytearray()
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as r:
                r.raise_for_status()
                total = int(r.headers.get("Content-Length", 0) or 0)
                with tqdm(
                    total=total or None,
                    unit="B",
                    unit_scale=True,
                    desc=label or url.rsplit("/", 1)[-1],
                    file=sys.stderr,
                    disable=not (self.progress and sys.stderr.isatty()),
                    leave=False,
                ) as bar:
                    for chunk in r.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            buf.extend(chunk)
                            bar.update(len(chunk))
        except requests.RequestException as e:
            raise NetworkFailure(f"Failed to download {url}: {e}") from e
        logger.debug("Downloaded %d bytes from %s", len(buf), url)
        return bytes(buf)

    def close(self) -> None:
        self.session.close()
