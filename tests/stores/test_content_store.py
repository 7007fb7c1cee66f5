"""Tests for catalog_import/stores/content_store.py"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from catalog_import.common.errors import AssetUploadError, ContentStoreWriteError
from catalog_import.stores import STATUS_PUBLISHED, ContentStoreClient
from catalog_import.stores.content_store import MAX_RETRY_DELAY, retry_delay


@pytest.fixture
def client():
    """Create a client with rate limiting disabled for fast tests."""
    c = ContentStoreClient(base_url="https://abc123.api.example.test/", token="sk_test", dataset="staging")
    c.min_request_interval = 0  # Disable rate limiting in tests
    return c


def ok_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.headers = {}
    return response


class TestInit:
    def test_base_url(self, client):
        assert client.base_url == "https://abc123.api.example.test/v2024-01-01"

    def test_session_headers(self, client):
        assert client.session.headers["Authorization"] == "Bearer sk_test"

    def test_dataset(self, client):
        assert client.dataset == "staging"


class TestRequest:
    def test_successful_get(self, client):
        with patch.object(client.session, "get", return_value=ok_response({"ok": True})) as get:
            result = client._request("GET", "data/query/staging", params={"query": "*"})

        assert result == {"ok": True}
        args, kwargs = get.call_args
        assert args[0] == "https://abc123.api.example.test/v2024-01-01/data/query/staging"
        assert kwargs["params"] == {"query": "*"}

    def test_successful_post(self, client):
        with patch.object(client.session, "post", return_value=ok_response({"ok": True})):
            result = client._request("POST", "data/mutate/staging", json_body={"mutations": []})

        assert result == {"ok": True}

    def test_returns_none_on_400(self, client):
        response = ok_response(None, status_code=404)
        response.text = "Not Found"

        with patch.object(client.session, "get", return_value=response):
            assert client._request("GET", "data/doc/staging/x") is None

    def test_returns_none_on_timeout(self, client):
        with patch.object(client.session, "get", side_effect=requests.exceptions.Timeout):
            assert client._request("GET", "data/query/staging") is None

    def test_returns_none_on_connection_error(self, client):
        with patch.object(client.session, "post", side_effect=requests.exceptions.ConnectionError):
            assert client._request("POST", "data/mutate/staging") is None

    def test_unsupported_method_raises(self, client):
        with pytest.raises(ValueError, match="Unsupported method"):
            client._request("PATCH", "data/mutate/staging")

    def test_retries_on_429(self, client):
        rate_limited = ok_response(None, status_code=429)
        rate_limited.headers = {"Retry-After": "0"}

        with patch.object(client.session, "get", side_effect=[rate_limited, ok_response({"ok": True})]):
            result = client._request("GET", "data/query/staging")

        assert result == {"ok": True}

    def test_retries_on_502_with_backoff(self, client):
        server_error = ok_response(None, status_code=502)

        with patch.object(client.session, "get", side_effect=[server_error, ok_response({"ok": True})]), \
                patch("catalog_import.stores.content_store.time.sleep") as sleep:
            result = client._request("GET", "data/query/staging")

        assert result == {"ok": True}
        sleep.assert_called_once_with(1)

    def test_max_retries_exceeded(self, client):
        unavailable = ok_response(None, status_code=503)
        unavailable.headers = {"Retry-After": "0"}

        with patch.object(client.session, "get", return_value=unavailable) as get:
            assert client._request("GET", "data/query/staging") is None

        assert get.call_count == client.MAX_RETRIES

    def test_no_sleep_after_final_attempt(self, client):
        unavailable = ok_response(None, status_code=503)

        with patch.object(client.session, "get", return_value=unavailable), \
                patch("catalog_import.stores.content_store.time.sleep") as sleep:
            assert client._request("GET", "data/query/staging") is None

        assert sleep.call_count == client.MAX_RETRIES - 1

    def test_http_date_retry_after(self, client):
        rate_limited = ok_response(None, status_code=429)
        rate_limited.headers = {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}

        with patch.object(client.session, "get", side_effect=[rate_limited, ok_response({"ok": True})]), \
                patch("catalog_import.stores.content_store.time.sleep") as sleep:
            result = client._request("GET", "data/query/staging")

        assert result == {"ok": True}
        sleep.assert_called_once_with(0.0)


class TestDocuments:
    def test_create_document(self, client):
        response = ok_response({"results": [{"id": "doc-1", "operation": "create"}]})

        with patch.object(client.session, "post", return_value=response) as post:
            doc_id = client.create_document({"_type": "product", "name": "Romper"})

        assert doc_id == "doc-1"
        args, kwargs = post.call_args
        assert args[0].endswith("/data/mutate/staging")
        assert kwargs["params"] == {"returnIds": "true"}
        created = kwargs["json"]["mutations"][0]["create"]
        assert created["name"] == "Romper"
        assert created["_id"]

    def test_create_keeps_given_id(self, client):
        with patch.object(client.session, "post", return_value=ok_response({"transactionId": "t1"})):
            assert client.create_document({"_id": "product-abc", "_type": "product"}) == "product-abc"

    def test_create_failure_raises(self, client):
        with patch.object(client.session, "post", return_value=ok_response(None, status_code=400)):
            with pytest.raises(ContentStoreWriteError):
                client.create_document({"_type": "product"})

    def test_publish_sets_status(self, client):
        with patch.object(client.session, "post", return_value=ok_response({"transactionId": "t1"})) as post:
            client.publish("doc-1")

        mutation = post.call_args.kwargs["json"]["mutations"][0]
        assert mutation == {"patch": {"id": "doc-1", "set": {"status": STATUS_PUBLISHED}}}

    def test_set_status_failure_raises(self, client):
        with patch.object(client.session, "post", side_effect=requests.exceptions.ConnectionError):
            with pytest.raises(ContentStoreWriteError):
                client.set_status("doc-1", "orphaned")

    def test_delete_document(self, client):
        with patch.object(client.session, "post", return_value=ok_response({"transactionId": "t1"})) as post:
            client.delete_document("doc-1")

        assert post.call_args.kwargs["json"]["mutations"] == [{"delete": {"id": "doc-1"}}]

    def test_delete_failure_raises(self, client):
        with patch.object(client.session, "post", return_value=ok_response(None, status_code=500)):
            with pytest.raises(ContentStoreWriteError):
                client.delete_document("doc-1")

    def test_get_document(self, client):
        response = ok_response({"documents": [{"_id": "doc-1", "name": "Romper"}]})
        with patch.object(client.session, "get", return_value=response):
            assert client.get_document("doc-1") == {"_id": "doc-1", "name": "Romper"}

    def test_get_missing_document(self, client):
        with patch.object(client.session, "get", return_value=ok_response({"documents": []})):
            assert client.get_document("doc-1") is None


class TestAssets:
    def test_upload_asset(self, client):
        response = ok_response({"document": {"_id": "image-abc", "url": "https://cdn.example.test/abc.webp"}})

        with patch.object(client.session, "post", return_value=response) as post:
            asset = client.upload_asset(b"bytes", "1005001-0-abcdef12.webp", "image/webp")

        assert asset.asset_id == "image-abc"
        assert asset.url == "https://cdn.example.test/abc.webp"
        args, kwargs = post.call_args
        assert args[0].endswith("/assets/images/staging")
        assert kwargs["data"] == b"bytes"
        assert kwargs["params"] == {"filename": "1005001-0-abcdef12.webp"}
        assert kwargs["headers"] == {"Content-Type": "image/webp"}

    def test_upload_failure_raises(self, client):
        with patch.object(client.session, "post", return_value=ok_response({"error": "bad"})):
            with pytest.raises(AssetUploadError):
                client.upload_asset(b"bytes", "x.webp", "image/webp")


class TestConnection:
    def test_connection_ok(self, client):
        with patch.object(client.session, "get", return_value=ok_response({"result": "doc-1"})):
            assert client.test_connection()

    def test_connection_failed(self, client):
        with patch.object(client.session, "get", return_value=ok_response(None, status_code=401)):
            assert not client.test_connection()

    def test_context_manager_closes_session(self):
        c = ContentStoreClient("https://abc123.api.example.test", "sk_test")
        with patch.object(c.session, "close") as close:
            with c:
                pass
        close.assert_called_once()


class TestRetryDelay:
    def test_seconds(self):
        assert retry_delay("3", 0) == 3.0

    def test_missing_uses_backoff(self):
        assert retry_delay(None, 0) == 1.0
        assert retry_delay("", 3) == 8.0

    def test_garbage_uses_backoff(self):
        assert retry_delay("soon", 2) == 4.0

    def test_future_http_date(self):
        when = datetime.now(timezone.utc) + timedelta(seconds=30)
        assert 25 <= retry_delay(format_datetime(when, usegmt=True), 0) <= 30

    def test_past_http_date_is_zero(self):
        assert retry_delay("Wed, 21 Oct 2015 07:28:00 GMT", 0) == 0.0

    def test_negative_clamped(self):
        assert retry_delay("-5", 0) == 0.0

    def test_capped(self):
        assert retry_delay("3600", 0) == MAX_RETRY_DELAY
        assert retry_delay(None, 10) == MAX_RETRY_DELAY

    def test_non_finite_uses_backoff(self):
        assert retry_delay("nan", 1) == 2.0
        assert retry_delay("inf", 1) == 2.0


class TestRateLimit:
    def test_concurrent_callers_get_distinct_slots(self, client):
        client.min_request_interval = 0.05
        waits = []

        with patch("catalog_import.stores.content_store.time.monotonic", return_value=100.0), \
                patch("catalog_import.stores.content_store.time.sleep", side_effect=waits.append):
            with ThreadPoolExecutor(max_workers=4) as pool:
                for _ in range(4):
                    pool.submit(client._rate_limit)

        assert client.requests_made == 4
        assert sorted(waits) == pytest.approx([0.05, 0.10, 0.15])

    def test_no_wait_when_idle(self, client):
        client.min_request_interval = 0.05
        with patch("catalog_import.stores.content_store.time.sleep") as sleep:
            client._rate_limit()
        sleep.assert_not_called()
