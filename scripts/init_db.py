import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from todo_platform.config import load_config
from todo_platform.db import init_db


def main() -> None:
    cfg = load_config()
    if not cfg.DB_DSN:
        raise SystemExit("No database configured (set TODO_DATABASE_URL, DATABASE_URL or TODO_DB_PATH)")
    init_db(cfg.DB_DSN)
    print(f"DB initialized ({cfg.DB_DSN.split('@')[-1]})")


if __name__ == "__main__":
    main()
