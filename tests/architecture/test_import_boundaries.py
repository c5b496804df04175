"""
Import-boundary enforcement.

1. Kernel isolation     -- payroll_kernel/** imports nothing above it.
2. Engine purity        -- payroll_engines/** may not import modules, the
                           config loader, or the config entrypoint.
3. Engine no-impure     -- payroll_engines/** may not read the wall clock or
                           the environment.
4. Config direction     -- payroll_config/** may not import engines or modules.

All scanning is done via AST; these tests are read-only.
"""

import ast
import glob
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[str]:
    """Return all .py files under *package*, sorted for deterministic order."""
    return sorted(glob.glob(f"{ROOT / package}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _extract_attribute_calls(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, 'receiver.attr') for two-level attribute references."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    return [
        (node.lineno, f"{node.value.id}.{node.attr}")
        for node in ast.walk(tree)
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name)
    ]


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{Path(path).relative_to(ROOT)}:{lineno} imports {module}")
    return found


class TestKernelIsolation:
    """payroll_kernel/** is the bottom layer."""

    def test_kernel_imports_nothing_above_it(self):
        violations = _violations(
            "payroll_kernel", ("payroll_config", "payroll_engines", "payroll_modules"),
        )
        assert violations == [], "\n".join(violations)


class TestEnginePurity:
    """Engines receive configuration values and never load them."""

    FORBIDDEN_PREFIXES = ("payroll_modules", "payroll_config.loader", "yaml", "sqlalchemy")

    def test_no_forbidden_imports(self):
        violations = _violations("payroll_engines", self.FORBIDDEN_PREFIXES)
        assert violations == [], "\n".join(violations)

    def test_no_config_entrypoint_import(self):
        violations = [
            f"{Path(path).relative_to(ROOT)}:{lineno}"
            for path in _python_files("payroll_engines")
            for lineno, module in _extract_imports(path)
            if module == "payroll_config"
        ]
        assert violations == [], "\n".join(violations)

    def test_no_wall_clock_or_environment(self):
        impure = {"datetime.now", "datetime.utcnow", "date.today", "time.time", "os.environ", "os.getenv"}
        violations = [
            f"{Path(path).relative_to(ROOT)}:{lineno} uses {ref}"
            for path in _python_files("payroll_engines")
            for lineno, ref in _extract_attribute_calls(path)
            if ref in impure
        ]
        assert violations == [], "\n".join(violations)


class TestConfigDirection:

    def test_config_does_not_import_consumers(self):
        violations = _violations("payroll_config", ("payroll_engines", "payroll_modules"))
        assert violations == [], "\n".join(violations)


class TestSingleTransitionTable:
    """Only the service resolves advance actions against the workflow table."""

    def test_workflow_table_consumers(self):
        consumers = {
            str(Path(path).relative_to(ROOT))
            for path in _python_files("payroll_modules")
            if "ADVANCE_WORKFLOW" in Path(path).read_text()
        }
        assert consumers == {
            "payroll_modules/advances/__init__.py",
            "payroll_modules/advances/service.py",
            "payroll_modules/advances/workflows.py",
        }
