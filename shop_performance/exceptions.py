"""
Exception hierarchy for the Shop Performance Engine.

Data problems inside report rows are never raised to callers: the
normalizer turns them into diagnostics. Exceptions here signal broken
configuration or unreadable uploads.
"""


class ShopPerformanceError(Exception):
    """Base class for all errors raised by this package"""


class ColumnMapError(ShopPerformanceError):
    """A column mapping table is inconsistent (raised when the table is built)"""


class WorkbookError(ShopPerformanceError):
    """An uploaded file cannot be read or has no recognizable header row"""


class CellParseError(ShopPerformanceError, ValueError):
    """A single cell could not be parsed; always recovered by the normalizer"""
    
    def __init__(self, raw_value, reason: str):
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"{reason}: {raw_value!r}")
