"""
PostgREST (Supabase) implementation of the record store.
"""
import logging
from typing import Optional, List, Dict, Any

import httpx

from streamline_mcp.config import StoreConfig
from streamline_mcp.exceptions import StoreError
from streamline_mcp.storage.interface import StoreInterface, Filters

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _require_filters(method: str, collection: str, filters: Optional[Filters]) -> None:
    # PostgREST applies unfiltered PATCH/DELETE to the whole table
    if not filters:
        raise StoreError(
            f"Refusing unfiltered {method} on {collection}",
            operation=f"{method} {collection}"
        )


class RestStore(StoreInterface):
    """Record store backed by the Supabase REST API."""

    def __init__(
        self,
        config: StoreConfig,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT
    ):
        """
        Args:
            config: Project URL and API key
            client: Optional preconfigured httpx client (tests pass one with a
                mock transport)
            timeout: Request timeout in seconds
        """
        self.base_url = f"{config.project_url.rstrip('/')}/rest/v1"
        self.headers = {
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self.client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self.client.close()

    def _request(
        self,
        method: str,
        collection: str,
        params: Optional[List[tuple]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        url = f"{self.base_url}/{collection}"
        try:
            response = self.client.request(method, url, params=params, json=json, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} {collection} failed: {e}", exc_info=True)
            raise StoreError(
                f"Store request failed: {e}",
                operation=f"{method} {collection}",
                original_error=e
            ) from e

        if response.is_error:
            logger.error(f"{method} {collection} returned {response.status_code}: {response.text}")
            raise StoreError(
                f"Store error: {response.status_code} {response.text}",
                operation=f"{method} {collection}",
                status_code=response.status_code
            )
        return response

    @staticmethod
    def _filter_params(filters: Optional[Filters]) -> List[tuple]:
        return list((filters or {}).items())

    def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        params = [("select", "*")] + self._filter_params(filters)
        if order:
            params.append(("order", order))
        if limit:
            params.append(("limit", str(limit)))
        return self._request("GET", collection, params=params).json()

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._request("POST", collection, json=record).json()
        return rows[0] if rows else dict(record)

    def update(self, collection: str, filters: Filters, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        _require_filters("PATCH", collection, filters)
        return self._request("PATCH", collection, params=self._filter_params(filters), json=data).json()

    def delete(self, collection: str, filters: Filters) -> None:
        _require_filters("DELETE", collection, filters)
        self._request("DELETE", collection, params=self._filter_params(filters))
