from __future__ import annotations

import re
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def changelog_version(path: Path) -> str:
    content = path.read_text(encoding="utf-8")
    match = re.search(r"^##\s+(\d+\.\d+\.\d+)", content, re.MULTILINE)
    if not match:
        raise ValueError(f"No version heading found in {path}")
    return match.group(1)


def pyproject_version(path: Path) -> str:
    content = path.read_text(encoding="utf-8")
    project = re.search(r"^\[project\](.*?)(?=^\[|\Z)", content, re.MULTILINE | re.DOTALL)
    if not project:
        raise ValueError(f"No [project] table found in {path}")
    match = re.search(r'^version\s*=\s*"([^"]+)"', project.group(1), re.MULTILINE)
    if not match:
        raise ValueError(f"No version in [project] table of {path}")
    return match.group(1)


def check_backend() -> list[str]:
    errors: list[str] = []
    version = (ROOT / "backend" / "VERSION").read_text(encoding="utf-8").strip()

    changelog_value = changelog_version(ROOT / "backend" / "CHANGELOG.md")
    if version != changelog_value:
        errors.append(
            f"Backend version mismatch: VERSION={version} CHANGELOG={changelog_value}"
        )

    pyproject_value = pyproject_version(ROOT / "pyproject.toml")
    if version != pyproject_value:
        errors.append(
            f"Package version mismatch: VERSION={version} pyproject.toml={pyproject_value}"
        )
    return errors


def main() -> int:
    errors = check_backend()

    if errors:
        for error in errors:
            print(error)
        return 1

    print("Version files and changelog are in sync.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
