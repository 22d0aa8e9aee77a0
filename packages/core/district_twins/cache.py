"""
Result cache clients for generated constituents and policy summaries.

Entries are keyed by region id, kind and (for policy summaries) a
content hash. Cache failures are logged and treated as misses; they
never fail a request.
"""

import hashlib
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests

from .config import DEFAULT_HTTP_TIMEOUT

logger = logging.getLogger(__name__)

KIND_CONSTITUENTS = "constituents"
KIND_POLICY_SUMMARY = "policy-summary"
CACHE_KINDS = (KIND_CONSTITUENTS, KIND_POLICY_SUMMARY)
DEFAULT_MAX_AGE_HOURS = 24


def content_hash(content: str) -> str:
    """SHA-256 hex digest of a document, used to key policy summaries."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _check_kind(kind: str) -> None:
    if kind not in CACHE_KINDS:
        raise ValueError(f"Unknown cache kind '{kind}'. Expected one of: {', '.join(CACHE_KINDS)}")


class ResultCache(ABC):
    """Minimal get/put/delete interface over a result store."""

    @abstractmethod
    def get(self, region_id: str, kind: str, content_hash: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Return the stored payload, or None on a miss."""
        pass

    @abstractmethod
    def put(self, region_id: str, kind: str, payload: Dict[str, Any], content_hash: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def delete(self, region_id: str, kind: str, content_hash: Optional[str] = None) -> bool:
        """Remove an entry; returns True if one existed."""
        pass


class FileResultCache(ResultCache):
    """
    JSON files under ``cache_dir/<kind>/`` with a freshness check.

    Entries older than ``max_age_hours`` are reported as misses.
    """

    def __init__(self, cache_dir: Union[str, Path], max_age_hours: float = DEFAULT_MAX_AGE_HOURS):
        self.cache_dir = Path(cache_dir)
        self.max_age = timedelta(hours=max_age_hours)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileResultCache initialized at {self.cache_dir}")

    def _path(self, region_id: str, kind: str, content_hash: Optional[str]) -> Path:
        _check_kind(kind)
        safe_region = re.sub(r"[^A-Za-z0-9_-]", "_", region_id)
        name = f"{safe_region}__{content_hash}" if content_hash else safe_region
        return self.cache_dir / kind / f"{name}.json"

    def get(self, region_id: str, kind: str, content_hash: Optional[str] = None) -> Optional[Dict[str, Any]]:
        path = self._path(region_id, kind, content_hash)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            created_at = datetime.fromisoformat(entry["created_at"])
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to read cache entry {path}: {e}")
            return None

        age = datetime.now() - created_at
        if age > self.max_age:
            logger.debug(f"Cache entry for {region_id}/{kind} is stale ({age})")
            return None

        logger.debug(f"Cache hit for {region_id}/{kind}")
        return entry.get("payload")

    def put(self, region_id: str, kind: str, payload: Dict[str, Any], content_hash: Optional[str] = None) -> None:
        path = self._path(region_id, kind, content_hash)
        entry = {
            "region_id": region_id,
            "kind": kind,
            "content_hash": content_hash,
            "created_at": datetime.now().isoformat(),
            "payload": payload,
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(entry, f, indent=2, ensure_ascii=False)
            logger.debug(f"Saved {region_id}/{kind} to cache")
        except (OSError, TypeError) as e:
            logger.warning(f"Failed to save cache entry {path}: {e}")

    def delete(self, region_id: str, kind: str, content_hash: Optional[str] = None) -> bool:
        path = self._path(region_id, kind, content_hash)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete cache entry {path}: {e}")
            return False

    def clear_expired(self) -> int:
        """Delete stale entries; returns how many were removed."""
        removed = 0
        for path in self.cache_dir.glob("*/*.json"):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    created_at = datetime.fromisoformat(json.load(f)["created_at"])
                if datetime.now() - created_at > self.max_age:
                    path.unlink()
                    removed += 1
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable cache entry {path}: {e}")
        return removed


class RemoteResultCache(ResultCache):
    """
    Client for the backend cache HTTP API.

    ``GET/POST/DELETE {base_url}/cache/{kind}/{region_id}``; 404 is a miss.
    The policy content hash travels as the ``contentHash`` query parameter.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _url(self, region_id: str, kind: str) -> str:
        _check_kind(kind)
        return f"{self.base_url}/cache/{kind}/{requests.utils.quote(region_id, safe='')}"

    @staticmethod
    def _params(content_hash: Optional[str]) -> Dict[str, str]:
        return {"contentHash": content_hash} if content_hash else {}

    def get(self, region_id: str, kind: str, content_hash: Optional[str] = None) -> Optional[Dict[str, Any]]:
        try:
            response = self.session.get(
                self._url(region_id, kind), params=self._params(content_hash), timeout=self.timeout
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Remote cache lookup failed for {region_id}/{kind}: {e}")
            return None

        if isinstance(body, dict) and "data" in body:
            body = body["data"]
        return body if isinstance(body, dict) else None

    def put(self, region_id: str, kind: str, payload: Dict[str, Any], content_hash: Optional[str] = None) -> None:
        body = {"data": payload}
        if content_hash:
            body["contentHash"] = content_hash
        try:
            response = self.session.post(self._url(region_id, kind), json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Remote cache store failed for {region_id}/{kind}: {e}")

    def delete(self, region_id: str, kind: str, content_hash: Optional[str] = None) -> bool:
        try:
            response = self.session.delete(
                self._url(region_id, kind), params=self._params(content_hash), timeout=self.timeout
            )
            if response.status_code == 404:
                return False
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(f"Remote cache delete failed for {region_id}/{kind}: {e}")
            return False


def create_cache_from_settings(settings) -> ResultCache:
    """Remote cache when a URL is configured, otherwise the local file cache."""
    if settings.cache_url:
        return RemoteResultCache(settings.cache_url, token=settings.cache_token, timeout=settings.http_timeout)
    return FileResultCache(settings.cache_dir)
