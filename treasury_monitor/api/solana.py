"""
Solana RPC Client

Single responsibility: communicate with a Solana JSON-RPC endpoint.
"""

import asyncio
import itertools
import logging
import math
from typing import Any, Optional

import aiohttp

from ..errors import RPCError

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000


def parse_native_balance(result: Any) -> float:
    """
    Convert a ``getBalance`` result to SOL.

    Args:
        result: RPC result object ``{"context": {...}, "value": <lamports>}``

    Returns:
        Balance in SOL
    """
    if not isinstance(result, dict) or "value" not in result:
        raise ValueError(f"Malformed getBalance result: {result!r}")
    lamports = result["value"]
    if isinstance(lamports, bool) or not isinstance(lamports, int):
        raise ValueError(f"Lamport balance is not an integer: {lamports!r}")
    return lamports / LAMPORTS_PER_SOL


def parse_token_balance(result: Any) -> float:
    """
    Extract the UI amount from a ``getTokenAccountBalance`` result.

    ``uiAmount`` is already adjusted for the mint's decimals. Some nodes
    return it as null and only fill ``uiAmountString``.
    """
    if not isinstance(result, dict) or not isinstance(result.get("value"), dict):
        raise ValueError(f"Malformed getTokenAccountBalance result: {result!r}")
    value = result["value"]
    raw = value.get("uiAmount")
    if raw is None:
        raw = value.get("uiAmountString")
    if raw is None:
        raise ValueError("Token balance has neither uiAmount nor uiAmountString")
    amount = float(raw)
    if not math.isfinite(amount):
        raise ValueError(f"Token balance is not finite: {raw!r}")
    return amount


class SolanaRPCClient:
    """
    Async client for Solana JSON-RPC.

    Handles:
    - Native balance lookups (getBalance)
    - Token account balance lookups (getTokenAccountBalance)
    - Concurrency control and retries on rate limiting / transport errors
    """

    def __init__(
        self,
        url: str,
        commitment: str = "confirmed",
        max_concurrent: int = 5,
        timeout_sec: float = 10.0,
        max_retries: int = 2,
        backoff_sec: float = 1.0,
    ):
        self.url = url
        self.commitment = commitment
        self.max_concurrent = max_concurrent
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self.max_retries = max_retries
        self.backoff_sec = backoff_sec
        self._session: Optional[aiohttp.ClientSession] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._ids = itertools.count(1)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self):
        """Create session and semaphore if needed."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def close(self):
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
            self._semaphore = None

    async def _request(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call with retry logic.

        Args:
            method: RPC method name
            params: Positional params

        Returns:
            The ``result`` member of the response

        Raises:
            RPCError: On RPC-level errors or after exhausting retries
        """
        await self._ensure_session()
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        last_error = "no attempt made"

        for attempt in range(self.max_retries + 1):
            try:
                async with self._semaphore:
                    async with self._session.post(
                        self.url,
                        json=payload,
                        headers={"Content-Type": "application/json"},
                    ) as response:
                        if response.status == 429:
                            backoff = self.backoff_sec * (2 ** attempt)
                            logger.warning(f"{method} rate limited, backing off {backoff}s")
                            last_error = "HTTP 429"
                            await asyncio.sleep(backoff)
                            continue

                        if response.status != 200:
                            text = await response.text()
                            raise RPCError(method, f"HTTP {response.status}: {text[:200]}")

                        body = await response.json(content_type=None)

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"{method} request error (attempt {attempt + 1}): {last_error}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.backoff_sec)
                continue

            if not isinstance(body, dict):
                raise RPCError(method, f"unexpected response body {body!r:.200}")
            if body.get("error"):
                error = body["error"]
                if isinstance(error, dict):
                    raise RPCError(method, str(error.get("message", error)), error.get("code"))
                raise RPCError(method, str(error))
            if "result" not in body:
                raise RPCError(method, "response has no result")
            return body["result"]

        raise RPCError(method, f"gave up after {self.max_retries + 1} attempts ({last_error})")

    # -------------------------------------------------------------------------
    # Public Methods
    # -------------------------------------------------------------------------

    async def get_balance(self, address: str) -> float:
        """
        Get the native balance of a system account.

        Args:
            address: Base58 account address

        Returns:
            Balance in SOL
        """
        result = await self._request("getBalance", [address, {"commitment": self.commitment}])
        try:
            return parse_native_balance(result)
        except ValueError as e:
            raise RPCError("getBalance", str(e))

    async def get_token_account_balance(self, address: str) -> float:
        """
        Get the decimal-adjusted balance of an SPL token account.

        Args:
            address: Base58 token account address

        Returns:
            UI amount (e.g. USDC, not base units)
        """
        result = await self._request("getTokenAccountBalance", [address, {"commitment": self.commitment}])
        try:
            return parse_token_balance(result)
        except ValueError as e:
            raise RPCError("getTokenAccountBalance", str(e))
