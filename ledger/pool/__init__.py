from ledger.pool.registry import LiquidityPoolRegistry

__all__ = ["LiquidityPoolRegistry"]
