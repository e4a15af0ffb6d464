"""Nominal code rules for accounting categories."""

from enum import Enum

from freeagent.domain.models import NominalCode


class CategoryGroup(str, Enum):
    """Category groups, in nominal code order."""

    INCOME = "income"
    COST_OF_SALES = "cost_of_sales"
    ADMIN_EXPENSES = "admin_expenses"
    CURRENT_ASSETS = "current_assets"
    LIABILITIES = "liabilities"
    EQUITIES = "equities"


NOMINAL_CODE_RANGES: dict[CategoryGroup, tuple[int, int]] = {
    CategoryGroup.INCOME: (1, 49),
    CategoryGroup.COST_OF_SALES: (96, 199),
    CategoryGroup.ADMIN_EXPENSES: (200, 399),
    CategoryGroup.CURRENT_ASSETS: (671, 720),
    CategoryGroup.LIABILITIES: (731, 780),
    CategoryGroup.EQUITIES: (921, 960),
}


def parse_group(value: str) -> CategoryGroup:
    """Parse a group name such as ``cost-of-sales`` or ``Admin Expenses``.

    Raises:
        ValueError: If the name is not a category group.
    """
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return CategoryGroup(key)
    except ValueError:
        names = ", ".join(group.value for group in CategoryGroup)
        raise ValueError(f"Unknown category group '{value}' (expected one of: {names})") from None


def _base_code(nominal_code: NominalCode) -> int | None:
    # Sub-accounts look like "750-1"; the part before the dash is the code
    head = nominal_code.strip().split("-", 1)[0]
    if not head.isdigit():
        return None
    return int(head)


def nominal_code_range(group: CategoryGroup) -> tuple[int, int]:
    return NOMINAL_CODE_RANGES[group]


def is_valid_nominal_code(nominal_code: NominalCode, group: CategoryGroup) -> bool:
    """Check a nominal code falls in the range reserved for its group."""
    code = _base_code(nominal_code)
    if code is None:
        return False
    low, high = NOMINAL_CODE_RANGES[group]
    return low <= code <= high


def group_for_nominal_code(nominal_code: NominalCode) -> CategoryGroup | None:
    code = _base_code(nominal_code)
    if code is None:
        return None
    for group, (low, high) in NOMINAL_CODE_RANGES.items():
        if low <= code <= high:
            return group
    return None


def requires_tax_reporting_name(group: CategoryGroup) -> bool:
    return group in (
        CategoryGroup.COST_OF_SALES,
        CategoryGroup.ADMIN_EXPENSES,
        CategoryGroup.CURRENT_ASSETS,
        CategoryGroup.LIABILITIES,
    )


def requires_allowable_for_tax(group: CategoryGroup) -> bool:
    """Only spending categories record whether they are allowable for tax."""
    return group in (CategoryGroup.COST_OF_SALES, CategoryGroup.ADMIN_EXPENSES)
