"""
Layer boundaries of the inventory kernel.

1. inventory_kernel/** may NOT import inventory_config.  Configuration is
   bridged in through KernelSettings, never read by the kernel itself.

2. inventory_kernel/domain/** is pure: no SQLAlchemy, no db/, models/,
   services/ or selectors/ at runtime (TYPE_CHECKING imports are allowed).

3. Selectors are read-only: they never import services and never write.

4. The kernel invariants declaration is complete.

These tests read source code via AST; they import nothing they inspect.
"""

import ast
from pathlib import Path

from inventory_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

REPO_ROOT = Path(__file__).resolve().parents[2]
KERNEL = REPO_ROOT / "inventory_kernel"


def _python_files(root: Path) -> list[Path]:
    return sorted(root.rglob("*.py"))


def _runtime_imports(path: Path) -> list[tuple[int, str]]:
    """Module-level imports, skipping ``if TYPE_CHECKING:`` blocks."""
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in tree.body:
        if isinstance(node, ast.Import):
            results.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _all_imports(path: Path) -> list[tuple[int, str]]:
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            results.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches(module: str, prefixes) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


class TestKernelNoUpwardDependencies:

    def test_kernel_does_not_import_config(self):
        violations = [
            f"  {path.relative_to(REPO_ROOT)}:{lineno} imports '{module}'"
            for path in _python_files(KERNEL)
            for lineno, module in _all_imports(path)
            if _matches(module, FORBIDDEN_KERNEL_IMPORTS)
        ]
        assert not violations, "Kernel imports upward packages:\n" + "\n".join(violations)


class TestDomainPurity:

    FORBIDDEN = (
        "sqlalchemy",
        "inventory_kernel.db",
        "inventory_kernel.models",
        "inventory_kernel.services",
        "inventory_kernel.selectors",
    )

    def test_domain_has_no_persistence_imports(self):
        violations = [
            f"  {path.relative_to(REPO_ROOT)}:{lineno} imports '{module}'"
            for path in _python_files(KERNEL / "domain")
            for lineno, module in _runtime_imports(path)
            if _matches(module, self.FORBIDDEN)
        ]
        assert not violations, "domain/ must stay pure:\n" + "\n".join(violations)


class TestSelectorsReadOnly:

    WRITE_METHODS = frozenset({"add", "add_all", "delete", "flush", "commit", "merge"})

    def test_selectors_do_not_import_services(self):
        violations = [
            f"  {path.relative_to(REPO_ROOT)}:{lineno} imports '{module}'"
            for path in _python_files(KERNEL / "selectors")
            for lineno, module in _all_imports(path)
            if _matches(module, ("inventory_kernel.services",))
        ]
        assert not violations, "\n".join(violations)

    def test_selectors_never_write(self):
        offenders = []
        for path in _python_files(KERNEL / "selectors"):
            for node in ast.walk(ast.parse(path.read_text())):
                if (
                    isinstance(node, ast.Call)
                    and isinstance(node.func, ast.Attribute)
                    and node.func.attr in self.WRITE_METHODS
                    and ast.unparse(node.func.value).endswith("session")
                ):
                    offenders.append(f"  {path.relative_to(REPO_ROOT)}:{node.lineno}")
        assert not offenders, "Selectors write through the session:\n" + "\n".join(offenders)


class TestKernelInvariantsDeclaration:

    def test_required_invariants_declared(self):
        required = {
            "RECONCILIATION",
            "CHAINING",
            "NON_NEGATIVE_STOCK",
            "IMMUTABILITY",
            "ATOMIC_VALIDATION",
            "SEQUENCE_MONOTONICITY",
        }
        assert required <= {inv.name for inv in KernelInvariant}
        assert ALL_KERNEL_INVARIANTS == frozenset(KernelInvariant)

    def test_config_is_forbidden_to_the_kernel(self):
        assert "inventory_config" in FORBIDDEN_KERNEL_IMPORTS
