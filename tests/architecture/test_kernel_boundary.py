"""
Import boundary tests.

The kernel sits at the bottom: it must never import configuration or
services.  Configuration may import the kernel but not services.
"""

import ast
from pathlib import Path

import pytest

from assignx_kernel.invariants import ALL_KERNEL_INVARIANTS, FORBIDDEN_KERNEL_IMPORTS

ROOT = Path(__file__).resolve().parents[2]

FORBIDDEN = {
    "assignx_kernel": FORBIDDEN_KERNEL_IMPORTS,
    "assignx_config": ("assignx_services",),
}


def _imports(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    names = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            names.add(node.module)
    return names


def _violations(package: str) -> list[str]:
    found = []
    for path in sorted((ROOT / package).rglob("*.py")):
        for name in _imports(path):
            top = name.split(".")[0]
            if top in FORBIDDEN[package]:
                found.append(f"{path.relative_to(ROOT)} imports {name}")
    return found


class TestLayering:

    @pytest.mark.parametrize("package", sorted(FORBIDDEN))
    def test_no_upward_imports(self, package):
        assert _violations(package) == []

    def test_kernel_has_no_yaml_dependency(self):
        offenders = [
            str(path.relative_to(ROOT))
            for path in (ROOT / "assignx_kernel").rglob("*.py")
            if "yaml" in _imports(path)
        ]
        assert offenders == []


class TestInvariantCatalogue:

    def test_catalogue_is_complete(self):
        assert {i.value for i in ALL_KERNEL_INVARIANTS} == {
            "quote_split_exact",
            "ledger_replay",
            "non_negative_balance",
            "ledger_append_only",
            "serialized_transitions",
            "doer_capacity",
            "settle_once",
            "money_frozen_after_payment",
        }
