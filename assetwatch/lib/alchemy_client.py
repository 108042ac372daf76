"""
Alchemy API client with automatic rate limit handling and retry logic.

This module provides the balance source used by asset detection: batched
ERC-20 balance lookups for a list of candidate contracts, and single
`balanceOf` reads for already tracked tokens.
"""

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests


# Network configuration mapping
NETWORK_ENDPOINTS = {
    "ethereum": "eth-mainnet.g.alchemy.com",
    "sepolia": "eth-sepolia.g.alchemy.com",
    "polygon": "polygon-mainnet.g.alchemy.com",
    "base": "base-mainnet.g.alchemy.com",
    "bnb": "bnb-mainnet.g.alchemy.com",
}

# alchemy_getTokenBalances accepts at most this many contracts per request
MAX_CONTRACTS_PER_REQUEST = 100

# ERC-20 balanceOf(address) selector
BALANCE_OF_SELECTOR = "0x70a08231"

# Retry configuration
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_MAX_DELAY = 32.0  # seconds
DEFAULT_JITTER = 0.1  # ±10%
DEFAULT_TIMEOUT = 15.0  # seconds, per HTTP request


@dataclass
class TokenBalance:
    """Represents one entry of an ERC-20 balance batch."""

    contract_address: str
    balance: Optional[str]  # Hex string, None when the entry failed
    error: Optional[str] = None


class AlchemyAPIError(Exception):
    """Exception raised for Alchemy API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AlchemyRateLimitError(AlchemyAPIError):
    """Exception raised when rate limit is exceeded and retries are exhausted."""

    pass


class AlchemyClient:
    """
    Alchemy JSON-RPC client with automatic 429 retry handling.

    All balance queries go through this class, which handles:
    - Network-specific endpoint URLs
    - HTTP 429 rate limit retries with exponential backoff
    - Connection and server error retries (timeouts are not retried)
    - Per-request timeouts
    - JSON-RPC batching of contract balance lookups
    """

    def __init__(
        self,
        api_key: str,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter: float = DEFAULT_JITTER,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the Alchemy client.

        Args:
            api_key: Alchemy API key
            initial_delay: Initial delay in seconds for retry backoff
            backoff_multiplier: Multiplier for exponential backoff
            max_retries: Maximum number of retry attempts
            max_delay: Maximum delay cap in seconds
            jitter: Jitter factor (±percentage) to randomize delays
            timeout: Timeout in seconds for each HTTP request
        """
        self.api_key = api_key
        self.initial_delay = initial_delay
        self.backoff_multiplier = backoff_multiplier
        self.max_retries = max_retries
        self.max_delay = max_delay
        self.jitter = jitter
        self.timeout = timeout
        self.session = requests.Session()

    def _sanitize_error_message(self, message: str) -> str:
        """Remove API key from error messages to prevent credential leakage."""
        if not self.api_key:
            return message
        return message.replace(self.api_key, "[REDACTED]")

    def _get_base_url(self, network: str) -> str:
        """Get the base URL for a network."""
        if network not in NETWORK_ENDPOINTS:
            raise ValueError(f"Unsupported network: {network}")
        endpoint = NETWORK_ENDPOINTS[network]
        return f"https://{endpoint}/v2/{self.api_key}"

    def _apply_jitter(self, delay: float) -> float:
        """Apply random jitter to a delay value."""
        jitter_range = delay * self.jitter
        return delay + random.uniform(-jitter_range, jitter_range)

    def _execute_with_retry(
        self,
        request_func: Callable[[], requests.Response],
    ) -> requests.Response:
        """
        Execute a request function with retry logic for rate limits and server errors.

        Args:
            request_func: A callable that returns a requests.Response

        Returns:
            The successful response

        Raises:
            AlchemyAPIError: For API errors after retries exhausted
            AlchemyRateLimitError: When rate limit retries are exhausted
        """
        delay = self.initial_delay

        for attempt in range(self.max_retries + 1):
            try:
                response = request_func()

                if response.status_code == 429:
                    if attempt < self.max_retries:
                        time.sleep(self._apply_jitter(min(delay, self.max_delay)))
                        delay *= self.backoff_multiplier
                        continue
                    raise AlchemyRateLimitError(
                        "Rate limit exceeded and max retries reached",
                        status_code=429,
                    )

                if response.status_code == 401:
                    raise AlchemyAPIError("Invalid API key", status_code=401)

                if response.status_code >= 500:
                    if attempt < self.max_retries:
                        time.sleep(self._apply_jitter(min(delay, self.max_delay)))
                        delay *= self.backoff_multiplier
                        continue
                    raise AlchemyAPIError(
                        f"Server error: {response.status_code}",
                        status_code=response.status_code,
                    )

                response.raise_for_status()
                return response

            except requests.Timeout as e:
                # A hung endpoint is not retried; each call stays within one timeout
                raise AlchemyAPIError(f"Request timed out after {self.timeout}s") from e

            except requests.RequestException as e:
                if attempt < self.max_retries:
                    time.sleep(self._apply_jitter(min(delay, self.max_delay)))
                    delay *= self.backoff_multiplier
                    continue
                sanitized_msg = self._sanitize_error_message(str(e))
                raise AlchemyAPIError(f"Request failed: {sanitized_msg}") from e

        raise AlchemyAPIError("Max retries exceeded")

    def _post_json(self, network: str, payload: Any) -> Any:
        url = self._get_base_url(network)
        response = self._execute_with_retry(
            lambda: self.session.post(url, json=payload, timeout=self.timeout)
        )
        try:
            return response.json()
        except ValueError as e:
            raise AlchemyAPIError("Malformed JSON response") from e

    def _request(
        self,
        network: str,
        method: str,
        params: Any,
        request_id: int = 1,
    ) -> Any:
        """
        Make a JSON-RPC request with automatic 429 retry and exponential backoff.

        Args:
            network: Target network (ethereum, sepolia, polygon, base, bnb)
            method: JSON-RPC method name
            params: Method parameters
            request_id: JSON-RPC request ID

        Returns:
            The 'result' field from the JSON-RPC response

        Raises:
            AlchemyAPIError: For API errors
            AlchemyRateLimitError: When rate limit retries are exhausted
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": request_id,
        }
        data = self._post_json(network, payload)

        if not isinstance(data, dict):
            raise AlchemyAPIError("Unexpected JSON-RPC response")

        if "error" in data:
            error = data["error"]
            raise AlchemyAPIError(
                f"API error: {error.get('message', str(error))}",
                status_code=error.get("code"),
            )

        return data.get("result", {})

    def _request_batch(self, network: str, calls: Sequence[Dict[str, Any]]) -> Dict[int, Dict]:
        """
        Send several JSON-RPC calls in a single HTTP request.

        Args:
            network: Target network
            calls: List of {"method", "params"} dicts; ids are assigned by position

        Returns:
            Mapping of call index to its raw JSON-RPC response object
        """
        payload = [
            {"jsonrpc": "2.0", "method": call["method"], "params": call["params"], "id": i}
            for i, call in enumerate(calls)
        ]
        data = self._post_json(network, payload)

        # A single error object instead of a list means the whole batch was rejected
        if isinstance(data, dict):
            error = data.get("error")
            if not isinstance(error, dict):
                error = {"message": str(error or "batch rejected")}
            raise AlchemyAPIError(
                f"API error: {error.get('message', str(error))}",
                status_code=error.get("code"),
            )
        if not isinstance(data, list):
            raise AlchemyAPIError("Unexpected JSON-RPC batch response")

        return {item.get("id"): item for item in data if isinstance(item, dict)}

    def get_token_balances_for_contracts(
        self,
        network: str,
        wallet: str,
        contracts: Sequence[str],
    ) -> List[TokenBalance]:
        """
        Get ERC-20 balances of a wallet for an explicit list of contracts.

        The contracts are split into chunks accepted by
        `alchemy_getTokenBalances` and sent together as one JSON-RPC batch.
        A failing chunk or entry is reported through `TokenBalance.error`
        without discarding the rest of the batch.

        Args:
            network: Target network
            wallet: Owner address
            contracts: Candidate token contract addresses

        Returns:
            One TokenBalance per requested contract

        Raises:
            AlchemyAPIError: When the batch request itself fails
        """
        if not contracts:
            return []

        chunks = [
            list(contracts[i : i + MAX_CONTRACTS_PER_REQUEST])
            for i in range(0, len(contracts), MAX_CONTRACTS_PER_REQUEST)
        ]
        calls = [
            {"method": "alchemy_getTokenBalances", "params": [wallet, chunk]} for chunk in chunks
        ]
        responses_by_id = self._request_batch(network, calls)

        balances: List[TokenBalance] = []
        for index, chunk in enumerate(chunks):
            item = responses_by_id.get(index)
            if item is None or "error" in item:
                error = (item or {}).get("error") or {"message": "Missing batch response"}
                if isinstance(error, dict):
                    message = error.get("message", str(error))
                else:
                    message = str(error)
                balances.extend(TokenBalance(c, None, error=message) for c in chunk)
                continue

            result = item.get("result") or {}
            reported = {}
            for tb in result.get("tokenBalances", []):
                address = tb.get("contractAddress", "")
                reported[address.lower()] = TokenBalance(
                    contract_address=address,
                    balance=tb.get("tokenBalance"),
                    error=tb.get("error"),
                )

            for contract in chunk:
                balances.append(
                    reported.get(
                        contract.lower(),
                        TokenBalance(contract, None, error="Contract missing from response"),
                    )
                )

        return balances

    def get_token_balance(self, network: str, contract: str, wallet: str) -> int:
        """
        Read `balanceOf(wallet)` on a token contract.

        Args:
            network: Target network
            contract: Token contract address
            wallet: Owner address

        Returns:
            Raw balance in the token's smallest unit
        """
        data = BALANCE_OF_SELECTOR + wallet[2:].lower().rjust(64, "0")
        result = self._request(network, "eth_call", [{"to": contract, "data": data}, "latest"])
        if not isinstance(result, str):
            raise AlchemyAPIError("Unexpected eth_call result")
        if result in ("0x", ""):
            return 0
        try:
            return int(result, 16)
        except ValueError as e:
            raise AlchemyAPIError(f"Malformed balance: {result}") from e
