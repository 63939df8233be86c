"""Discogs API client for sync operations."""

import asyncio
import logging
from typing import Any

import httpx

from ..config import DiscogsConfig
from ..exceptions import AlreadyExists, RemoteApiError, RemoteConfigError, RemoteUnavailable
from ..models import ListPage, ListType, Pagination, SearchResults

logger = logging.getLogger(__name__)

# Connection pool limits
DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

# Discogs caps per_page at 100
MAX_PAGE_SIZE = 100

# Response key holding the entries of each list type
ITEMS_KEYS: dict[ListType, str] = {
    ListType.COLLECTION: "releases",
    ListType.WANTLIST: "wants",
    ListType.SUGGESTIONS: "releases",
}


class DiscogsClient:
    """Async client for the Discogs API.

    Credentials are read from ``config`` on every request, never cached, so
    a missing token is reported by the call that needs it.
    """

    def __init__(self, config: DiscogsConfig):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    @property
    def username(self) -> str:
        if not self.config.username:
            raise RemoteConfigError("Discogs username not configured")
        return self.config.username

    @property
    def token(self) -> str:
        if not self.config.api_token:
            raise RemoteConfigError("Discogs token not configured")
        return self.config.api_token

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Discogs token={self.token}",
            "User-Agent": self.config.user_agent,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds, connect=10.0),
                limits=DEFAULT_LIMITS,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an authenticated request to the Discogs API.

        Raises RemoteConfigError before any I/O when credentials are missing,
        RemoteUnavailable on transport failures and httpx.HTTPStatusError on
        non-2xx answers (callers map those per endpoint).
        """
        headers = self.headers
        url = f"{self.base_url}{endpoint}"
        client = await self._get_client()
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise RemoteUnavailable(f"Discogs unreachable: {e}") from e
        response.raise_for_status()
        return response

    @staticmethod
    def _api_error(error: httpx.HTTPStatusError) -> RemoteApiError:
        status = error.response.status_code
        if status == 429:
            logger.warning("Discogs rate limit hit (429)")
        return RemoteApiError(status)

    # ========== Single pages ==========

    async def get_collection(
        self,
        page: int = 1,
        per_page: int = 50,
        folder: int | str | None = None,
        sort: str = "added",
        sort_order: str = "desc",
    ) -> ListPage:
        """Fetch one page of a collection folder."""
        folder_id = self.config.collection_folder_id if folder is None else folder
        endpoint = f"/users/{self.username}/collection/folders/{folder_id}/releases"
        params = {"sort": sort, "sort_order": sort_order, "page": page, "per_page": per_page}
        logger.debug("Fetching collection folder %s page %d", folder_id, page)
        try:
            response = await self._request("GET", endpoint, params=params)
        except httpx.HTTPStatusError as e:
            logger.error("Error fetching collection from Discogs: %s", e)
            raise self._api_error(e) from e

        data = response.json()
        logger.info("Successfully fetched collection page %d", page)
        return ListPage(
            items=data.get("releases", []),
            pagination=Pagination.model_validate(data.get("pagination", {})),
        )

    async def get_wantlist(self, page: int = 1, per_page: int = 50) -> ListPage:
        """Fetch one page of the wantlist."""
        endpoint = f"/users/{self.username}/wants"
        logger.debug("Fetching wantlist page %d", page)
        try:
            response = await self._request("GET", endpoint, params={"page": page, "per_page": per_page})
        except httpx.HTTPStatusError as e:
            logger.error("Error fetching wantlist from Discogs: %s", e)
            raise self._api_error(e) from e

        data = response.json()
        logger.info("Successfully fetched wantlist page %d", page)
        return ListPage(
            items=data.get("wants", []),
            pagination=Pagination.model_validate(data.get("pagination", {})),
        )

    async def fetch_list_page(
        self,
        list_type: ListType,
        page: int = 1,
        per_page: int = MAX_PAGE_SIZE,
        sort: str = "added",
        sort_order: str = "desc",
    ) -> ListPage:
        """Fetch one page of any reconciled list."""
        if list_type is ListType.WANTLIST:
            return await self.get_wantlist(page=page, per_page=per_page)
        folder = (
            self.config.suggestions_folder_id
            if list_type is ListType.SUGGESTIONS
            else self.config.collection_folder_id
        )
        return await self.get_collection(page=page, per_page=per_page, folder=folder, sort=sort, sort_order=sort_order)

    # ========== Whole lists ==========

    async def fetch_all_pages(self, list_type: ListType) -> list[Any]:
        """Fetch every page of a list, pausing between requests for the rate limit.

        Entries come back as received, in page order, then in-page order.
        """
        per_page = min(self.config.page_size, MAX_PAGE_SIZE)
        all_items: list[Any] = []
        page = 1
        total_pages = 1

        logger.info("[%s] Fetching entire list...", list_type.value)

        while True:
            result = await self.fetch_list_page(list_type, page=page, per_page=per_page)
            all_items.extend(result.items)
            total_pages = result.pagination.pages
            logger.info(
                "[%s] Fetched page %d/%d (%d items)",
                list_type.value,
                page,
                total_pages,
                len(result.items),
            )
            if page >= total_pages:
                break
            page += 1
            await asyncio.sleep(self.config.page_delay_seconds)

        logger.info("[%s] Fetched complete list: %d items", list_type.value, len(all_items))
        return all_items

    # ========== Folder membership ==========

    async def add_to_folder(self, release_id: int, folder_id: int | None = None) -> dict[str, Any]:
        """Add a release to a collection folder (the suggestions folder by default).

        Returns the Discogs answer, e.g. ``{"instance_id": 123, ...}``. Raises
        AlreadyExists when Discogs refuses with 403.
        """
        target = self.config.suggestions_folder_id if folder_id is None else folder_id
        endpoint = f"/users/{self.username}/collection/folders/{target}/releases/{release_id}"
        logger.debug("Adding release %d to folder %d", release_id, target)
        try:
            response = await self._request("POST", endpoint, json={})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 403:
                logger.info("Release %d already exists in folder %d", release_id, target)
                raise AlreadyExists(release_id, target) from e
            logger.error("Error adding release %d to folder %d: %s", release_id, target, e)
            raise self._api_error(e) from e

        logger.info("Successfully added release %d to folder %d", release_id, target)
        return response.json() if response.content else {}

    # ========== Search ==========

    async def search_releases(self, query: str, page: int = 1, per_page: int = 50) -> SearchResults:
        """Search the Discogs database for releases.

        Discogs answers 404 for an empty result set; that is returned as an
        empty page rather than an error.
        """
        logger.debug("Searching releases with query: %s", query)
        try:
            response = await self._request(
                "GET",
                "/database/search",
                params={"q": query, "type": "release", "page": page, "per_page": per_page},
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return SearchResults(
                    results=[],
                    pagination=Pagination(page=page, pages=0, per_page=per_page, items=0),
                )
            logger.error("Error searching releases on Discogs: %s", e)
            raise self._api_error(e) from e

        results = SearchResults.model_validate(response.json())
        logger.info("Search returned %d results for query: %s", len(results.results), query)
        return results

    # ========== Health Check ==========

    async def test_connection(self) -> dict[str, Any]:
        """Check that the configured credentials can read the collection."""
        try:
            result = await self.get_collection(page=1, per_page=1)
        except Exception as e:
            logger.warning("Discogs connection test FAILED: %s", e)
            return {"status": "error", "message": "Discogs API connection failed", "error": str(e)}
        return {
            "status": "success",
            "message": "Discogs API connection successful",
            "total_items": result.pagination.items,
        }
