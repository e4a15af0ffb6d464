"""Domain type definitions for freeagent.

- Money: Monetary amount as a Decimal (the API sends decimals as strings)
- NominalCode: Ledger nominal code, e.g. "001" or "750-1"
- AccountingPeriod: Inclusive date range used to scope reports
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, NewType

Money = Decimal

NominalCode = NewType("NominalCode", str)


def to_money(value: Any) -> Money:
    """Convert an API value to Money.

    Args:
        value: str, int, float, Decimal or None.

    Returns:
        Decimal amount. None becomes zero.

    Raises:
        ValueError: If the value is not numeric.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e


@dataclass(frozen=True)
class AccountingPeriod:
    """Inclusive date range for balance sheet, trial balance and cashflow queries."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Period start {self.start} is after end {self.end}")

    def as_params(self) -> dict[str, str]:
        """Query parameters in the form the report endpoints expect."""
        return {"from_date": self.start.isoformat(), "to_date": self.end.isoformat()}
