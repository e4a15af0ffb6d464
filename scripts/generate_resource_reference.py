#!/usr/bin/env python3
"""Generate resource reference documentation from the resource registry."""

import sys
from itertools import groupby
from pathlib import Path

# Add parent directory to path to import freeagent
sys.path.insert(0, str(Path(__file__).parent.parent))

from freeagent.api.resources import REGISTRY, ResourceSpec

OPERATION_VERBS = {
    "list": "GET {path}",
    "get": "GET {path}/:id",
    "create": "POST {path}",
    "update": "PUT {path}/:id",
    "delete": "DELETE {path}/:id",
}

GROUP_TITLES = {
    "accounting": "Accounting",
    "assets": "Assets and stock",
    "banking": "Banking",
    "payroll": "Payroll",
    "purchases": "Purchases",
    "sales": "Sales",
    "setup": "Setup",
    "tax": "Tax",
    "time": "Time tracking",
}


def generate_resource_doc(spec: ResourceSpec) -> str:
    """Generate markdown documentation for one resource."""
    lines = [f"### {spec.name}", ""]
    if spec.description:
        lines += [spec.description, ""]

    lines += [
        f"Root keys: `{spec.singular}` (single record), `{spec.plural}` (list).",
        "",
        "| Operation | Request |",
        "|-----------|---------|",
    ]
    for operation, template in OPERATION_VERBS.items():
        if operation in spec.operations:
            lines.append(f"| {operation} | `{template.format(path='/v2/' + spec.path)}` |")
    for action in spec.actions:
        lines.append(f"| {action.name} | `{action.method} {action.path_for('/v2/' + spec.path + '/:id')}` |")
    lines.append("")

    if spec.views:
        lines += ["Views: " + ", ".join(f"`{view}`" for view in spec.views), ""]

    return "\n".join(lines)


def generate_resource_reference() -> str:
    """Generate the complete resource reference."""
    lines = [
        "---",
        "tags: [reference]",
        "---",
        "",
        "# Resource Reference",
        "",
        "Collections available through `freeagent list/get/create/update/delete/action`.",
        "List requests accept `page` and `per_page` (max 100) and report totals in `X-Total-Count`.",
        "",
    ]

    specs = sorted(REGISTRY.values(), key=lambda s: (s.group, s.name))
    for group, members in groupby(specs, key=lambda s: s.group):
        lines += [f"## {GROUP_TITLES.get(group, group.title())}", ""]
        lines += [generate_resource_doc(spec) for spec in members]

    return "\n".join(lines)


def main() -> None:
    """Generate and write resource reference documentation."""
    output_path = Path(__file__).parent.parent / "docs" / "reference" / "resources.md"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path.write_text(generate_resource_reference())
    print(f"Generated resource reference at {output_path}")


if __name__ == "__main__":
    main()
