"""
Balance Reader
==============

Resolves tracked accounts to their current balance.

- SOL accounts: getBalance, lamports / LAMPORTS_PER_SOL
- USDC accounts: getTokenAccountBalance, uiAmount as reported

Queries for one cycle are independent, so they are fanned out concurrently
behind a semaphore and collected once all of them have settled.
"""

import asyncio
import logging
from typing import Dict, Sequence

from ..api.solana import SolanaRPCClient
from ..errors import BalanceQueryFailed
from ..models import AccountKind, TrackedAccount

logger = logging.getLogger(__name__)

# Async concurrency settings
MAX_CONCURRENT_QUERIES = 5


class BalanceReader:
    """Reads current balances for tracked accounts through a Solana RPC client."""

    def __init__(self, client: SolanaRPCClient, max_concurrent: int = MAX_CONCURRENT_QUERIES):
        self.client = client
        self.max_concurrent = max_concurrent

    async def query(self, account: TrackedAccount) -> float:
        """
        Get the current balance of one account.

        Raises:
            BalanceQueryFailed: On any RPC failure, or for an unrecognized kind
        """
        kind = account.kind
        try:
            if kind is AccountKind.NATIVE:
                return await self.client.get_balance(account.address)
            if kind is AccountKind.TOKEN:
                return await self.client.get_token_account_balance(account.address)
        except BalanceQueryFailed:
            raise
        except Exception as e:
            raise BalanceQueryFailed(account, e) from e
        raise BalanceQueryFailed(account, ValueError(f"unsupported account type {account.type!r}"))

    async def _query_one(self, semaphore: asyncio.Semaphore, account: TrackedAccount) -> float:
        async with semaphore:
            balance = await self.query(account)
            logger.debug(f"{account.name or account.address}: {balance} {account.type}")
            return balance

    async def query_all(self, accounts: Sequence[TrackedAccount]) -> Dict[int, float]:
        """
        Query every recognized account concurrently.

        Args:
            accounts: Accounts in report order

        Returns:
            Dict mapping account index to balance (unrecognized kinds omitted)

        Raises:
            BalanceQueryFailed: The first failure in account order, raised only
                after every query has settled
        """
        indexes = [i for i, acc in enumerate(accounts) if acc.is_tracked]
        skipped = len(accounts) - len(indexes)
        if skipped:
            logger.info(f"Skipping {skipped} account(s) with unrecognized type")

        semaphore = asyncio.Semaphore(self.max_concurrent)
        try:
            tasks = [self._query_one(semaphore, accounts[i]) for i in indexes]
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            await self.client.close()

        balances: Dict[int, float] = {}
        for i, result in zip(indexes, results):
            if isinstance(result, BaseException):
                if isinstance(result, BalanceQueryFailed):
                    raise result
                raise BalanceQueryFailed(accounts[i], result) from result
            balances[i] = result

        logger.info(f"Fetched {len(balances)} balances")
        return balances

    def fetch_balances(self, accounts: Sequence[TrackedAccount]) -> Dict[int, float]:
        """
        Sync wrapper for async balance fetching.

        Each call runs its own event loop, so the client session is closed
        at the end of every call.
        """
        return asyncio.run(self.query_all(accounts))
