"""
OpenSea assets API client.

Fetches the collectibles a wallet currently owns. Only the first page is
requested; callers are told when that page was full so they can treat the
listing as possibly incomplete.
"""

from typing import Any, Dict, List, Optional

import requests

from .models import ApiCollectible, OwnershipResult


OPENSEA_API_URL = "https://api.opensea.io/api/v1/assets"
DEFAULT_PAGE_LIMIT = 300
DEFAULT_TIMEOUT = 15.0  # seconds


class OpenSeaAPIError(Exception):
    """Exception raised for OpenSea API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OpenSeaClient:
    """
    Minimal client for the OpenSea assets endpoint.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = OPENSEA_API_URL,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the OpenSea client.

        Args:
            api_key: Optional OpenSea API key, sent as X-API-KEY
            base_url: Assets endpoint URL
            page_limit: Maximum number of assets requested
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url
        self.page_limit = page_limit
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"X-API-KEY": self.api_key}
        return {}

    def get_assets_for_owner(self, owner: str) -> OwnershipResult:
        """
        Get the collectibles owned by a wallet.

        Args:
            owner: Owner address

        Returns:
            OwnershipResult; `truncated` is set when the page limit was hit

        Raises:
            OpenSeaAPIError: On network errors, timeouts, HTTP errors or a
                malformed response body
        """
        params = {"owner": owner, "limit": self.page_limit}
        try:
            response = self.session.get(
                self.base_url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise OpenSeaAPIError(f"Request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise OpenSeaAPIError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise OpenSeaAPIError("Rate limit exceeded", status_code=429)
        if response.status_code >= 400:
            raise OpenSeaAPIError(
                f"HTTP error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OpenSeaAPIError("Malformed JSON response") from e

        assets = data.get("assets") if isinstance(data, dict) else None
        if not isinstance(assets, list):
            raise OpenSeaAPIError("Response has no 'assets' list")

        collectibles: List[ApiCollectible] = []
        for asset in assets:
            if not isinstance(asset, dict):
                continue
            collectibles.append(self._parse_asset(asset))

        return OwnershipResult(
            collectibles=collectibles,
            truncated=len(assets) >= self.page_limit,
        )

    @staticmethod
    def _parse_asset(asset: Dict[str, Any]) -> ApiCollectible:
        contract = asset.get("asset_contract")
        if not isinstance(contract, dict):
            contract = {}
        return ApiCollectible(
            token_id=str(asset.get("token_id", "")),
            contract_address=contract.get("address", ""),
            name=asset.get("name"),
            description=asset.get("description"),
            image_url=asset.get("image_original_url"),
        )
