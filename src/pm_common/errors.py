"""Unified error codes and custom exceptions.

Error code ranges:
  3xxx: Market / settlement state
  4xxx: Trade entry
  9xxx: System / configuration
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class MarketNotOpenError(AppError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(3002, f"Market {market_id} is not open (status={status})", 422)


class InvalidStateError(AppError):
    """Settlement requested against a market or ledger in the wrong state."""

    def __init__(self, detail: str) -> None:
        super().__init__(3003, f"Invalid state: {detail}", 409)


# --- 4xxx: Trade ---

class NoLiquidityError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(4001, f"Market has no liquidity: {market_id}", 422)


class ConcurrentUpdateError(AppError):
    """Pool snapshot changed between pricing and commit; safe to retry."""

    def __init__(self, market_id: str) -> None:
        super().__init__(4002, f"Market pools changed concurrently: {market_id}", 409)


class StakeTooSmallError(AppError):
    def __init__(self, market_id: str, amount: object) -> None:
        super().__init__(
            4003, f"Stake {amount} buys no shares in market {market_id}", 422
        )


# --- 9xxx: System ---

class ConfigurationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Configuration error: {detail}", 500)
