"""
Content Store Client

Client for the document content store (product display documents) and
its image asset store. Documents are written through the mutations
endpoint; binaries through the assets endpoint.

Handles authentication, rate limiting and retries the same way for
every call.
"""

import logging
import math
import threading
import time
import uuid
from abc import abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..common.errors import AssetUploadError, ContentStoreWriteError
from ..images.processor import AssetStore
from ..models import UploadedAsset

logger = logging.getLogger(__name__)

STATUS_PENDING = 'pending'
STATUS_PUBLISHED = 'published'
STATUS_ORPHANED = 'orphaned'

MAX_RETRY_DELAY = 60.0


class ContentStore(AssetStore):
    """Document store for display content plus its asset store."""

    @abstractmethod
    def create_document(self, document: Dict[str, Any]) -> str:
        """
        Create a document and return its id.

        Raises:
            ContentStoreWriteError: If the store rejects the write
        """

    @abstractmethod
    def set_status(self, document_id: str, status: str) -> None:
        """
        Set the lifecycle status (pending, published, orphaned) of a document.

        Raises:
            ContentStoreWriteError: If the store rejects the write
        """

    @abstractmethod
    def delete_document(self, document_id: str) -> None:
        """
        Delete a document.

        Raises:
            ContentStoreWriteError: If the store rejects the delete
        """

    def publish(self, document_id: str) -> None:
        self.set_status(document_id, STATUS_PUBLISHED)


class ContentStoreClient(ContentStore):
    """
    HTTP client for the content store.

    Handles:
    - Bearer token authentication
    - Rate limiting (default 10 requests/second)
    - Retries on 429/502/503/504 honoring Retry-After (seconds or HTTP-date)

    One instance (and its session) is shared by the image worker threads
    during asset uploads; every request passes through the locked rate
    limiter.

    Usage:
        client = ContentStoreClient(
            base_url="https://abc123.api.example-cms.io",
            token="sk_xxx",
            dataset="production",
        )
        doc_id = client.create_document({"_type": "product", "name": "Romper"})
    """

    API_VERSION = "v2024-01-01"
    MAX_RETRIES = 5
    RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

    def __init__(self, base_url: str, token: str, dataset: str = "production",
                 session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            base_url: Project API root (with or without trailing slash)
            token: Write token
            dataset: Dataset documents and assets are written to
            session: Optional pre-configured session
        """
        self.base_url = f"{base_url.rstrip('/')}/{self.API_VERSION}"
        self.dataset = dataset

        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
        })

        # Rate limiting
        self.requests_made = 0
        self.last_request_time = 0.0
        self.min_request_interval = 0.1
        self._rate_lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def close(self):
        self.session.close()

    def _rate_limit(self):
        """
        Keep at least min_request_interval between requests.

        Safe to call from several threads: each caller reserves the next
        free slot under the lock and sleeps outside it.
        """
        with self._rate_lock:
            now = time.monotonic()
            wait = max(0.0, self.last_request_time + self.min_request_interval - now)
            self.last_request_time = now + wait
            self.requests_made += 1
        if wait:
            time.sleep(wait)

    def _request(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[Dict] = None,
        data: Optional[bytes] = None,
        params: Optional[Dict] = None,
        headers: Optional[Dict] = None,
        timeout: int = 30,
    ) -> Optional[Dict]:
        """
        Make an API request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST)
            endpoint: Path below the versioned API root
            json_body: JSON request body
            data: Raw request body (asset uploads)
            params: Query parameters
            headers: Extra headers for this request
            timeout: Request timeout in seconds

        Returns:
            Response JSON or None on error
        """
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported method: {method}")

        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        for attempt in range(self.MAX_RETRIES):
            self._rate_limit()

            try:
                if method == "GET":
                    response = self.session.get(url, params=params, headers=headers, timeout=timeout)
                else:
                    response = self.session.post(url, json=json_body, data=data, params=params,
                                                 headers=headers, timeout=timeout)

                # Retry on rate limiting or server errors
                if response.status_code in self.RETRYABLE_STATUS_CODES:
                    if attempt == self.MAX_RETRIES - 1:
                        break
                    delay = retry_delay(response.headers.get("Retry-After"), attempt)
                    logger.warning("HTTP %d on %s, retry %d/%d in %.1fs...",
                                   response.status_code, endpoint, attempt + 1,
                                   self.MAX_RETRIES - 1, delay)
                    time.sleep(delay)
                    continue

                if response.status_code >= 400:
                    logger.error("Content store error %d: %s", response.status_code, response.text[:200])
                    return None

                return response.json()

            except requests.exceptions.Timeout:
                logger.error("Request timeout: %s", endpoint)
                return None
            except requests.exceptions.RequestException as e:
                logger.error("Request failed: %s", e)
                return None

        logger.error("Max retries (%d) exceeded for %s %s", self.MAX_RETRIES, method, endpoint)
        return None

    def mutate(self, mutations: List[Dict[str, Any]]) -> Optional[Dict]:
        """Run a batch of mutations in one transaction."""
        return self._request(
            "POST",
            f"data/mutate/{self.dataset}",
            json_body={"mutations": mutations},
            params={"returnIds": "true"},
        )

    def create_document(self, document: Dict[str, Any]) -> str:
        doc = dict(document)
        doc.setdefault("_id", str(uuid.uuid4()))

        result = self.mutate([{"create": doc}])
        if not result:
            raise ContentStoreWriteError(
                "Content store rejected document create",
                {"document_type": doc.get("_type"), "document_id": doc["_id"]},
            )

        results = result.get("results") or [{}]
        document_id = results[0].get("id") or doc["_id"]
        logger.info("Created content document %s", document_id)
        return document_id

    def set_status(self, document_id: str, status: str) -> None:
        result = self.mutate([{"patch": {"id": document_id, "set": {"status": status}}}])
        if not result:
            raise ContentStoreWriteError(
                f"Could not set document status to {status}",
                {"document_id": document_id, "status": status},
            )
        logger.debug("Document %s -> %s", document_id, status)

    def delete_document(self, document_id: str) -> None:
        result = self.mutate([{"delete": {"id": document_id}}])
        if not result:
            raise ContentStoreWriteError(
                "Could not delete content document",
                {"document_id": document_id},
            )
        logger.info("Deleted content document %s", document_id)

    def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document by id, or None if missing or on error."""
        result = self._request("GET", f"data/doc/{self.dataset}/{quote(document_id)}")
        if not result:
            return None
        documents = result.get("documents") or []
        return documents[0] if documents else None

    def upload_asset(self, data: bytes, filename: str, content_type: str) -> UploadedAsset:
        result = self._request(
            "POST",
            f"assets/images/{self.dataset}",
            data=data,
            params={"filename": filename},
            headers={"Content-Type": content_type},
            timeout=60,
        )
        document = (result or {}).get("document") or {}
        if not document.get("_id"):
            raise AssetUploadError("Asset upload failed", {"filename": filename})

        return UploadedAsset(asset_id=document["_id"], url=document.get("url", ""))

    def test_connection(self) -> bool:
        """
        Check credentials and dataset by listing one document.

        Returns:
            True if connection successful
        """
        result = self._request(
            "GET",
            f"data/query/{self.dataset}",
            params={"query": "*[0]._id"},
        )
        if result is not None:
            logger.info("Connected to content store dataset: %s", self.dataset)
            return True
        return False


def retry_delay(retry_after: Optional[str], attempt: int) -> float:
    """
    Seconds to wait before retry number `attempt` (0-based).

    Retry-After may be delta-seconds or an HTTP-date. A missing or
    unparseable value falls back to exponential backoff. The result is
    never negative and never above MAX_RETRY_DELAY.
    """
    backoff = min(float(2 ** attempt), MAX_RETRY_DELAY)
    value = retry_after.strip() if isinstance(retry_after, str) else ''
    if not value:
        return backoff

    try:
        delay = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            logger.debug("Unparseable Retry-After %r, using backoff", value)
            return backoff
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        delay = (when - datetime.now(timezone.utc)).total_seconds()

    if not math.isfinite(delay):
        return backoff
    return min(max(delay, 0.0), MAX_RETRY_DELAY)
