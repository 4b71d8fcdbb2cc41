"""REST client for the release tracker backend.

One shared ``httpx.AsyncClient`` is built at startup by ``build_http_client``
and wrapped by ``ReleaseTrackerClient``. Transport failures, timeouts included,
and non-2xx responses leave this module as ``ReleaseTrackerError`` subclasses, so
callers never see raw httpx exceptions.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import httpx
import pydantic
import structlog

from release_tracker.errors import (
    ConflictError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from release_tracker.models.artist import Artist, ArtistIdentity, ArtistList
from release_tracker.models.release import Release, ReleaseList, ReleasePage, ReleaseStats
from release_tracker.models.search import SearchResult

if TYPE_CHECKING:
    from release_tracker.config import ApiSettings

log = structlog.get_logger()


async def _log_request(request: httpx.Request) -> None:
    log.debug("http_request", method=request.method, path=request.url.path)


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    log.debug(
        "http_response",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
    )


def build_http_client(settings: ApiSettings) -> httpx.AsyncClient:
    """Create the shared httpx client for the backend."""
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"Content-Type": "application/json", "Accept": "application/json"},
        event_hooks={"request": [_log_request], "response": [_log_response]},
    )


def _server_message(response: httpx.Response) -> str | None:
    """Pull the backend's own error text out of a JSON body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for field in ("error", "message", "detail"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    return None


def raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    message = _server_message(response)
    path = response.request.url.path
    if status == 404:
        raise NotFoundError(message or f"Not found: {path}")
    if status == 409:
        raise ConflictError(message or "Resource already exists")
    if status >= 500:
        raise ServerError(message or f"HTTP {status} from {path}", status_code=status)
    raise ValidationError(message or f"HTTP {status} from {path}", status_code=status)


def _params(**kwargs: Any) -> dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


class ReleaseTrackerClient:
    """Typed wrapper over the backend REST API."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._client = http_client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            log.warning("http_timeout", method=method, path=path)
            raise NetworkError(f"Request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            log.warning("http_network_error", method=method, path=path, error=str(exc))
            raise NetworkError(f"Network error: {method} {path}: {exc}") from exc

        if response.status_code >= 400:
            log.warning(
                "http_error_status", method=method, path=path, status=response.status_code
            )
        raise_for_status(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {path}") from exc

    @staticmethod
    def _parse(model: type[pydantic.BaseModel], payload: Any, path: str) -> Any:
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as exc:
            log.warning("response_validation_failed", path=path, errors=exc.error_count())
            raise ServerError(f"Unexpected response shape from {path}") from exc

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health(self) -> Any:
        return await self._request("GET", "/health")

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    async def list_artists(self, sort: str | None = None, order: str | None = None) -> ArtistList:
        path = "/api/artists"
        payload = await self._request("GET", path, params=_params(sort=sort, order=order))
        return self._parse(ArtistList, payload, path)

    async def search_artists(self, query: str, limit: int = 10) -> list[SearchResult]:
        path = "/api/artists/search"
        payload = await self._request("GET", path, params={"q": query, "limit": limit})
        if isinstance(payload, dict):
            payload = payload.get("artists", [])
        if payload is None:
            return []
        if not isinstance(payload, list):
            log.warning("response_validation_failed", path=path, kind=type(payload).__name__)
            raise ServerError(f"Unexpected response shape from {path}")
        return [self._parse(SearchResult, item, path) for item in payload]

    async def add_artist(self, identity: ArtistIdentity) -> Artist:
        path = "/api/artists"
        payload = await self._request("POST", path, json=identity.to_payload())
        # Some backend versions wrap the created row as {"artist": {...}}
        if isinstance(payload, dict) and isinstance(payload.get("artist"), dict):
            payload = payload["artist"]
        return self._parse(Artist, payload, path)

    async def remove_artist(self, artist_id: str) -> Any:
        return await self._request("DELETE", f"/api/artists/{artist_id}")

    async def bulk_add_artists(self, identities: Iterable[ArtistIdentity]) -> Any:
        artists = [identity.to_payload() for identity in identities]
        return await self._request("POST", "/api/artists/bulk", json={"artists": artists})

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    async def list_releases(
        self,
        *,
        days: int | None = None,
        release_type: str | None = None,
        status: str | None = None,
        page: int | None = None,
        limit: int | None = None,
        artist_id: str | None = None,
    ) -> ReleasePage:
        path = "/api/releases"
        params = _params(
            days=days, type=release_type, status=status, page=page, limit=limit, artist_id=artist_id
        )
        payload = await self._request("GET", path, params=params)
        return self._parse(ReleasePage, payload, path)

    async def new_releases(self, limit: int = 50) -> ReleaseList:
        path = "/api/releases/new"
        payload = await self._request("GET", path, params={"limit": limit})
        return self._parse(ReleaseList, payload, path)

    async def release_stats(self) -> ReleaseStats:
        path = "/api/releases/stats"
        payload = await self._request("GET", path)
        return self._parse(ReleaseStats, payload or {}, path)

    async def get_release(self, release_id: str) -> Release:
        path = f"/api/releases/{release_id}"
        payload = await self._request("GET", path)
        return self._parse(Release, payload, path)

    async def mark_listened(self, release_id: str) -> Any:
        return await self._request("PUT", f"/api/releases/{release_id}/listened")

    async def mark_read(self, release_id: str) -> Any:
        return await self._request("PUT", f"/api/releases/{release_id}/read")

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def trigger_sync(self) -> Any:
        return await self._request("POST", "/api/sync/manual")

    async def sync_status(self) -> Any:
        return await self._request("GET", "/api/sync/status")

    async def sync_history(self, page: int | None = None, limit: int | None = None) -> Any:
        params = _params(page=page, limit=limit)
        return await self._request("GET", "/api/sync/history", params=params)

    async def sync_stats(self) -> Any:
        return await self._request("GET", "/api/sync/stats")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def notifications(
        self, page: int | None = None, limit: int | None = None, status: str | None = None
    ) -> Any:
        params = _params(page=page, limit=limit, status=status)
        return await self._request("GET", "/api/notifications", params=params)

    async def unread_notifications(self) -> Any:
        return await self._request("GET", "/api/notifications/unread")

    async def mark_notification_read(self, notification_id: str) -> Any:
        return await self._request("PUT", f"/api/notifications/{notification_id}/read")

    async def mark_all_notifications_read(self) -> Any:
        return await self._request("PUT", "/api/notifications/read-all")

    async def notification_stats(self) -> Any:
        return await self._request("GET", "/api/notifications/stats")
