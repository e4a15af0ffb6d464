"""Trial balance summaries."""

from dataclasses import dataclass
from typing import Any

from freeagent.domain.categories import CategoryGroup, group_for_nominal_code
from freeagent.domain.models import Money, NominalCode, to_money


@dataclass(frozen=True)
class GroupTotal:
    group: CategoryGroup | None
    total: Money
    count: int


def total(entries: list[dict[str, Any]]) -> Money:
    return sum((to_money(entry.get("total")) for entry in entries), to_money(0))


def summarize(entries: list[dict[str, Any]]) -> list[GroupTotal]:
    """Group trial balance entries by the category group of their nominal code.

    Entries whose code is outside every known band are grouped under None.
    Groups are returned in nominal code order, with None last.
    """
    totals: dict[CategoryGroup | None, list[Money]] = {}
    for entry in entries:
        group = group_for_nominal_code(NominalCode(str(entry.get("nominal_code", ""))))
        totals.setdefault(group, []).append(to_money(entry.get("total")))

    ordered = [group for group in CategoryGroup if group in totals]
    if None in totals:
        ordered.append(None)
    return [GroupTotal(group, sum(totals[group], to_money(0)), len(totals[group])) for group in ordered]


def check_trial_balance(entries: list[dict[str, Any]]) -> str | None:
    """Return a description of the imbalance, or None if debits equal credits."""
    imbalance = total(entries)
    if imbalance != 0:
        return f"Trial balance does not net to zero (off by {imbalance})"
    return None
