class TradeSimError(Exception):
    """Base class for all tradesim exceptions."""


class ConfigError(TradeSimError):
    """Raised for missing/malformed sweep or run configuration."""


class DataValidationError(TradeSimError):
    """Raised when bar or signal input cannot be parsed into engine data shapes."""


class SweepPointError(TradeSimError):
    """Raised when a single sweep grid point fails to evaluate."""

    def __init__(self, sl_mult: float, tp_mult: float, cause: BaseException):
        super().__init__(f"grid point sl={sl_mult} tp={tp_mult} failed: {cause!r}")
        self.sl_mult = sl_mult
        self.tp_mult = tp_mult
        self.cause = cause


__all__ = [
    "TradeSimError",
    "ConfigError",
    "DataValidationError",
    "SweepPointError",
]
