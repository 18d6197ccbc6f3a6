"""Validate Python layer import boundaries for race_planner."""

from __future__ import annotations

import argparse
import ast
from pathlib import Path

PACKAGE = "race_planner"
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SOURCE_ROOT = PROJECT_ROOT / "src" / PACKAGE
KNOWN_LAYERS = {"api", "core", "adapters", "cli", "application", "domain"}
RULES: dict[str, set[str]] = {
    "domain": {"core", "application", "api", "adapters", "cli"},
    "core": {"application", "api", "adapters", "cli"},
    "application": {"api", "adapters", "cli"},
}


def _layer_for_path(path: Path, source_root: Path) -> str | None:
    try:
        relative = path.relative_to(source_root)
    except ValueError:
        return None
    if len(relative.parts) < 2:
        return None
    return relative.parts[0]


def _layer_of_module(module_name: str) -> str | None:
    parts = module_name.split(".")
    if len(parts) < 2 or parts[0] != PACKAGE:
        return None
    return parts[1] if parts[1] in KNOWN_LAYERS else None


def _absolute_module(node: ast.ImportFrom, path: Path, source_root: Path) -> str | None:
    if node.level == 0:
        return node.module
    relative = path.relative_to(source_root)
    package_parts = [PACKAGE, *relative.with_suffix("").parts][:-1]
    if node.level - 1 >= len(package_parts):
        return None
    base = package_parts[: len(package_parts) - (node.level - 1)]
    return ".".join([*base, *([node.module] if node.module else [])])


def imported_layers(node: ast.Import | ast.ImportFrom, path: Path, source_root: Path) -> set[str]:
    """Layers referenced by one import statement."""
    if isinstance(node, ast.Import):
        return {
            layer for alias in node.names if (layer := _layer_of_module(alias.name)) is not None
        }
    module = _absolute_module(node, path, source_root)
    if not module:
        return set()
    layer = _layer_of_module(module)
    if layer is not None:
        return {layer}
    if module == PACKAGE:
        return {alias.name for alias in node.names if alias.name in KNOWN_LAYERS}
    return set()


def check_file(path: Path, source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    layer = _layer_for_path(path, source_root)
    banned = RULES.get(layer or "", set())
    if not banned:
        return []

    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    violations: list[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            continue
        for imported in sorted(imported_layers(node, path, source_root) & banned):
            violations.append(f"{path}:{node.lineno}: {layer} must not import {PACKAGE}.{imported}")
    return violations


def check_import_boundaries(source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    violations: list[str] = []
    for path in sorted(source_root.rglob("*.py")):
        violations.extend(check_file(path, source_root))
    return violations


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Check race_planner layer import boundaries.")
    parser.add_argument("--source-root", default=str(DEFAULT_SOURCE_ROOT))
    parsed = parser.parse_args(argv)
    violations = check_import_boundaries(Path(str(parsed.source_root)))
    if violations:
        raise SystemExit("\n".join(violations))
    print("import boundary checks passed")


if __name__ == "__main__":
    main()
