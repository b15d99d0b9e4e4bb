"""
Client for the Wayback Machine lookup APIs.

Covers the CDX index (page discovery and per-URL snapshot search) and the
availability endpoint (closest snapshot for a single URL). Lookup failures
never propagate: they are logged and reported as "no results".
"""

import logging
import re
import time
import urllib.parse

import requests

from fingerprint import random_fingerprint

logger = logging.getLogger(__name__)

CDX_API = "https://web.archive.org/cdx/search/cdx"
AVAILABILITY_API = "https://archive.org/wayback/available"


class ArchiveIndex:
    def __init__(self, session: requests.Session | None = None, timeout: float = 30,
                 request_delay: float = 0.0, sleep=time.sleep):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.request_delay = request_delay
        self.sleep = sleep

    def _get_json(self, endpoint: str, params: dict):
        """GET an API endpoint and decode JSON; None on any failure."""
        if self.request_delay > 0:
            self.sleep(self.request_delay)

        logger.debug(f"  API request {endpoint} {params}")
        try:
            response = self.session.get(
                endpoint, params=params, timeout=self.timeout,
                headers=random_fingerprint(resource=True).as_headers()
            )
        except requests.RequestException as e:
            logger.warning(f"  API request failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"  API returned HTTP {response.status_code}")
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"  API returned invalid JSON: {response.text[:200]!r}")
            return None

    @staticmethod
    def _rows(data) -> list[list]:
        """Strip the CDX header row and anything that is not a row."""
        if not isinstance(data, list) or len(data) < 2:
            return []
        return [row for row in data[1:] if isinstance(row, list) and row]

    def discover_pages(self, domain: str, date: str) -> list[str]:
        """Original URLs captured under the domain on the target date."""
        data = self._get_json(CDX_API, {
            'url': f"{domain}/*",
            'matchType': 'prefix',
            'from': date,
            'to': date,
            'output': 'json',
            'fl': 'original',
            'filter': 'statuscode:200',
            'collapse': 'urlkey',
        })
        return [row[0] for row in self._rows(data)]

    def search(self, url: str, to: str | None = None, status_ok: bool = True,
               prefix: bool = False, limit: int = 20) -> list[tuple[str, str]]:
        """Snapshot candidates for a URL, newest first, as (timestamp, original)."""
        if prefix:
            parts = urllib.parse.urlsplit(url)
            if parts.path.strip('/'):
                url = re.sub(r'/[^/]*$', '', url) + '/*'
            else:
                url = f"{parts.netloc}/*"

        params = {
            'url': url,
            'output': 'json',
            'fl': 'timestamp,original',
            'collapse': 'digest',
            'limit': limit,
            'sort': 'reverse',
        }
        if status_ok:
            params['filter'] = 'statuscode:200'
        if to:
            params['to'] = to

        candidates = []
        for row in self._rows(self._get_json(CDX_API, params)):
            timestamp = str(row[0])
            original = row[1] if len(row) > 1 else url
            candidates.append((timestamp, original))
        return candidates

    def closest(self, url: str, timestamp: str | None = None) -> str | None:
        """Timestamp of the closest available snapshot, if the archive has one."""
        params = {'url': url}
        if timestamp:
            params['timestamp'] = timestamp

        data = self._get_json(AVAILABILITY_API, params)
        if not isinstance(data, dict):
            return None
        closest = (data.get('archived_snapshots') or {}).get('closest') or {}
        if closest.get('available') and closest.get('timestamp'):
            return str(closest['timestamp'])
        return None
