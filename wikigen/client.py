import logging
from typing import Any

import httpx

from wikigen.errors import NetworkError

logger = logging.getLogger(__name__)

ENTRY_PAGE_URL = "https://sg-wiki-api-static.hoyolab.com/hoyowiki/zzz/wapi/entry_page"
DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (compatible; wikigen/1.0)",
    "x-rpc-wiki_app": "zzz",
}


class WikiClient:
    """
    Thin request/response wrapper around the entry_page endpoint.

    Any transport failure, non-2xx status, undecodable body, non-zero
    ``retcode`` or missing ``data.page`` is reported as ``NetworkError``.
    """

    def __init__(
        self,
        base_url: str = ENTRY_PAGE_URL,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self._base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.Client(
            headers=DEFAULT_HEADERS,
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    def __enter__(self) -> "WikiClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch(self, page_id: str, locale: str) -> dict[str, Any]:
        params = {"entry_page_id": str(page_id), "lang": locale}
        try:
            response = self._client.get(self._base_url, params=params, headers=DEFAULT_HEADERS)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"request timed out for page {page_id} ({locale})") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"transport error for page {page_id} ({locale}): {exc}") from exc

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code} for page {page_id} ({locale})",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkError(f"response for page {page_id} ({locale}) is not valid JSON") from exc

        if not isinstance(payload, dict):
            raise NetworkError(f"response for page {page_id} ({locale}) is not a JSON object")
        if payload.get("retcode") != 0:
            raise NetworkError(
                f"API error for page {page_id} ({locale}): retcode={payload.get('retcode')} "
                f"message={payload.get('message') or 'unknown'}"
            )

        data = payload.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("page"), dict):
            raise NetworkError(f"response for page {page_id} ({locale}) has no page data")

        logger.debug("fetched entry page", extra={"page_id": page_id, "locale": locale})
        return payload

    def fetch_locales(self, page_id: str, locales: tuple[str, ...] | list[str]) -> dict[str, dict[str, Any]]:
        return {locale: self.fetch(page_id, locale) for locale in locales}
