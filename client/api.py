# client/api.py
import httpx
from httpx import AsyncClient
from pydantic import ValidationError

from comparison.models import AlertRequest, Book, PriceHistory, SearchResultSet
from coordinator.errors import NetworkFailure, NotFound, ValidationFailure
from utils.config import API_BASE_URL, API_TIMEOUT, HTTP_RETRIES
from utils.logs import get_logger

from .retry import network_retry

logger = get_logger("client")


def _error_message(resp):
    """Prefer the backend's ``message``/``detail`` text over the bare status line."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return f"HTTP {resp.status_code} for {resp.request.method} {resp.request.url}"


def _field_errors(resp):
    """
    Extract per-field messages from a rejected alert.

    Understands ``{"errors": {"field": "message"}}`` and FastAPI style
    ``{"detail": [{"loc": [..., "field"], "msg": "..."}]}`` bodies. Anything
    else is reported against the whole form.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None
    errors = {}
    if isinstance(body, dict):
        if isinstance(body.get("errors"), dict):
            errors = {str(k): str(v) for k, v in body["errors"].items()}
        elif isinstance(body.get("detail"), list):
            for item in body["detail"]:
                loc = item.get("loc") or ["form"]
                errors[str(loc[-1])] = str(item.get("msg", "Invalid value"))
    return errors or {"form": _error_message(resp)}


class HttpBookSource:
    """
    BookSource backed by the Bookwise HTTP API.

    Args:
        base_url (str): API root, e.g. https://api.example.com/api
        timeout (float): Per-request timeout in seconds. Defaults to 10.
        retries (int): Attempts for GET requests on transient failures
        client (httpx.AsyncClient, optional): Pre-built client, used by tests
            to plug in a MockTransport
        retry_wait: tenacity wait strategy for GET retries

    Note:
        Timeouts and connection errors surface as NetworkFailure. Alerts are
        posted once, never retried.
    """

    def __init__(self, base_url=API_BASE_URL, timeout=API_TIMEOUT, retries=HTTP_RETRIES, client=None, retry_wait=None):
        self.base_url = (base_url or "").rstrip("/")
        self.retries = retries
        self.retry_wait = retry_wait
        self.client = client or AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _send(self, method, path, **kwargs):
        try:
            resp = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout {method} {path}: {e}")
            raise NetworkFailure(f"Request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Transport error {method} {path}: {e}")
            raise NetworkFailure(f"Request failed: {method} {path}: {e}") from e
        return resp

    async def _get_json(self, path, params=None, book_id=None):
        async for attempt in network_retry(attempts=self.retries, wait=self.retry_wait):
            with attempt:
                resp = await self._send("GET", path, params=params)
                if resp.status_code == 404 and book_id is not None:
                    raise NotFound(book_id)
                if resp.is_error:
                    raise NetworkFailure(_error_message(resp), status_code=resp.status_code)
                try:
                    return resp.json()
                except ValueError as e:
                    raise NetworkFailure(f"Malformed JSON from {path}", status_code=resp.status_code) from e

    async def search_books(self, query, limit=10):
        data = await self._get_json("/search", params={"q": query, "limit": limit})
        try:
            return SearchResultSet.model_validate(data)
        except ValidationError as e:
            raise NetworkFailure(f"Unexpected search payload for {query!r}") from e

    async def get_book_detail(self, book_id):
        data = await self._get_json(f"/book/{book_id}", book_id=book_id)
        try:
            return Book.model_validate(data)
        except ValidationError as e:
            raise NetworkFailure(f"Unexpected book payload for {book_id}") from e

    async def get_price_history(self, book_id, days=90):
        data = await self._get_json("/price-history", params={"book_id": book_id, "days": days}, book_id=book_id)
        if isinstance(data, dict):
            points = data.get("points", data.get("price_trend", []))
        else:
            points = data
        try:
            return PriceHistory.model_validate({"book_id": book_id, "points": points or []})
        except ValidationError as e:
            raise NetworkFailure(f"Unexpected price history payload for {book_id}") from e

    async def create_alert(self, request: AlertRequest):
        resp = await self._send("POST", "/alerts", json=request.model_dump())
        if resp.status_code in (400, 422):
            raise ValidationFailure(_field_errors(resp))
        if resp.status_code == 404:
            raise NotFound(request.book_id)
        if resp.is_error:
            raise NetworkFailure(_error_message(resp), status_code=resp.status_code)
        logger.info(f"Alert created for {request.book_id} at {request.target_price}")
        return True
