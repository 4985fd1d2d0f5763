"""
API Package
===========

External API clients for chain data and market prices.

Components:
- solana.py: SolanaRPCClient, balance result parsers
- coingecko.py: PriceOracle, CoinGeckoPriceOracle, PriceQuote
"""

from .solana import (
    SolanaRPCClient,
    LAMPORTS_PER_SOL,
    parse_native_balance,
    parse_token_balance,
)
from .coingecko import (
    PriceOracle,
    PriceQuote,
    CoinGeckoPriceOracle,
)

__all__ = [
    # Solana RPC
    "SolanaRPCClient",
    "LAMPORTS_PER_SOL",
    "parse_native_balance",
    "parse_token_balance",
    # Prices
    "PriceOracle",
    "PriceQuote",
    "CoinGeckoPriceOracle",
]
