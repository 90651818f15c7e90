#!/usr/bin/env python3
"""Layer isolation validation script.

Enforces the architectural rule that core/, types/, and utils/ directories
never depend on concrete adapters. The pipeline talks to stores and the push
gateway only through the protocols in types/.

This script scans for:
- Imports from mass_notify.gateway, mass_notify.storage or mass_notify.app
- Imports of the database driver (sqlalchemy) anywhere in the protected layers
- Imports of the HTTP library (aiohttp) in core/ and types/

Exit codes:
    0: No violations found (clean)
    1: Violations detected (architectural rule broken)
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Final

# ANSI color codes for terminal output
RED: Final[str] = "\033[91m"
GREEN: Final[str] = "\033[92m"
YELLOW: Final[str] = "\033[93m"
RESET: Final[str] = "\033[0m"

PROTECTED_DIRS: Final[tuple[str, ...]] = ("core", "types", "utils")

ADAPTER_IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*(?:from|import)\s+mass_notify\.(?:gateway|storage|app)\b"
)
DRIVER_IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\s*(?:from|import)\s+sqlalchemy\b")
HTTP_IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\s*(?:from|import)\s+aiohttp\b")

# utils/ owns the HTTP client implementation
HTTP_RESTRICTED_DIRS: Final[tuple[str, ...]] = ("core", "types")


def check_file(file_path: Path, protected_dir: str) -> list[tuple[int, str]]:
    """Check a single Python file for layer isolation violations.

    Args:
        file_path: Path to the Python file to check.
        protected_dir: Protected directory the file lives in.

    Returns:
        List of (line_number, violation_description) tuples.
    """
    violations: list[tuple[int, str]] = []

    try:
        lines = file_path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        print(f"{YELLOW}Warning: Could not read {file_path}: {e}{RESET}", file=sys.stderr)
        return violations

    for line_num, line in enumerate(lines, start=1):
        if ADAPTER_IMPORT_PATTERN.search(line):
            violations.append((line_num, f"Import of a concrete adapter: {line.strip()}"))

        if DRIVER_IMPORT_PATTERN.search(line):
            violations.append((line_num, f"Import of the database driver: {line.strip()}"))

        if protected_dir in HTTP_RESTRICTED_DIRS and HTTP_IMPORT_PATTERN.search(line):
            violations.append((line_num, f"Import of the HTTP library: {line.strip()}"))

    return violations


def scan_directory(base_path: Path, protected_dir: str) -> dict[Path, list[tuple[int, str]]]:
    """Scan a protected directory for violations.

    Args:
        base_path: Root path of the mass_notify package.
        protected_dir: Name of protected directory (core, types, or utils).

    Returns:
        Dictionary mapping file paths to their violations.
    """
    dir_path = base_path / protected_dir
    if not dir_path.exists():
        print(
            f"{YELLOW}Warning: Protected directory {dir_path} does not exist{RESET}",
            file=sys.stderr,
        )
        return {}

    violations_by_file: dict[Path, list[tuple[int, str]]] = {}
    for py_file in dir_path.rglob("*.py"):
        if "__pycache__" in py_file.parts:
            continue
        file_violations = check_file(py_file, protected_dir)
        if file_violations:
            violations_by_file[py_file] = file_violations

    return violations_by_file


def main() -> int:
    """Main entry point for the layer isolation check.

    Returns:
        Exit code: 0 if no violations, 1 if violations found.
    """
    project_root = Path(__file__).parent.parent
    src_path = project_root / "src" / "mass_notify"

    if not src_path.exists():
        print(f"{RED}Error: Could not find src/mass_notify directory{RESET}", file=sys.stderr)
        return 1

    print("Checking layer isolation in core, types, and utils modules...")
    print(f"Scanning: {src_path}\n")

    all_violations: dict[Path, list[tuple[int, str]]] = {}
    for protected_dir in PROTECTED_DIRS:
        all_violations.update(scan_directory(src_path, protected_dir))

    if not all_violations:
        print(f"{GREEN}✓ No layer isolation violations found!{RESET}")
        return 0

    total_violations = sum(len(v) for v in all_violations.values())
    print(f"{RED}✗ Found {total_violations} layer isolation violations:{RESET}\n")

    for file_path, violations in sorted(all_violations.items()):
        try:
            rel_path = file_path.relative_to(project_root)
        except ValueError:
            rel_path = file_path

        print(f"{RED}{rel_path}{RESET}")
        for line_num, description in violations:
            print(f"  {line_num}: {description}")
        print()

    print(f"{RED}Layer isolation check failed!{RESET}")
    print("\nCore, types, and utils must depend on protocols, not on gateway/ or storage/.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
