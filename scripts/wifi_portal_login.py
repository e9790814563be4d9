#!/usr/bin/env python3
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
CONFIG_PATH = PROJECT_ROOT / "config" / "settings.json"

from wimesh.cli import main  # noqa: E402


def with_default_config(argv: list[str]) -> list[str]:
    if any(arg in ("-c", "--config") or arg.startswith("--config=") for arg in argv):
        return argv
    if CONFIG_PATH.is_file():
        return ["--config", str(CONFIG_PATH), *argv]
    return argv


if __name__ == "__main__":
    raise SystemExit(main(with_default_config(sys.argv[1:])))
