"""Pure checks over decoded report payloads.

Nothing here performs I/O; callers fetch payloads through freeagent.api.
"""

from freeagent.domain.models import AccountingPeriod, Money, NominalCode, to_money

__all__ = ["AccountingPeriod", "Money", "NominalCode", "to_money"]
