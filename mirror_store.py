"""
On-disk mirror layout: the page/resource tree, sitemap.txt and missing.log.
"""

import logging
from datetime import datetime
from pathlib import Path

from url_tools import url_to_static_path

logger = logging.getLogger(__name__)

SITEMAP_FILE = "sitemap.txt"
MISSING_LOG_FILE = "missing.log"


class MirrorStore:
    """The file tree of one mirrored site, rooted at output_dir/<domain>."""

    def __init__(self, root):
        self.root = Path(root)

    def relative_path(self, url: str) -> str:
        return url_to_static_path(url)

    def path_for(self, url: str) -> Path:
        return self.root / self.relative_path(url)

    def has_content(self, url: str) -> bool:
        """True when a non-empty file already exists for url."""
        path = self.path_for(url)
        return path.is_file() and path.stat().st_size > 0

    def read_text(self, url: str) -> str:
        return self.path_for(url).read_text(encoding='utf-8', errors='replace')

    def write(self, url: str, content: bytes) -> Path:
        path = self.path_for(url)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def write_sitemap(self, entries: list[str]) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / SITEMAP_FILE
        path.write_text('\n'.join(entries), encoding='utf-8')
        return path


class MissingLog:
    """Append-only log of URLs that could not be mirrored."""

    def __init__(self, path, domain: str, date: str):
        self.path = Path(path)
        self.domain = domain
        self.date = date

    def initialize(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            f"=== Missing URLs for {self.domain} ({self.date}) ===\n"
            "Format: URL | Error | Timestamp\n"
            "----------------------------------------\n",
            encoding='utf-8'
        )

    def append(self, url: str, error: str, when: datetime | None = None) -> None:
        when = when or datetime.now()
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(f"{url} | {error} | {when.strftime('%Y-%m-%d %H:%M:%S')}\n")

    def entries(self) -> list[str]:
        """Logged entry lines, without the header."""
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding='utf-8').splitlines()
        return [line for line in lines[3:] if line.strip()]
