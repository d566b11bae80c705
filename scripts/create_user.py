"""Create or update a user by provider subject id.

Usage:
  python scripts/create_user.py --open-id u123 --name Alice --role admin

NOTE: This is intended for local/dev. Normal sign-in creates users through the
OAuth callback.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from todo_platform.auth.crud import find_user_by_open_id, set_user_role, upsert_user
from todo_platform.config import load_config
from todo_platform.db import Database


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--open-id", required=True)
    ap.add_argument("--name")
    ap.add_argument("--email")
    ap.add_argument("--role", choices=["user", "admin"])
    args = ap.parse_args()

    cfg = load_config()
    db = Database(cfg.DB_DSN)
    if not db.available():
        raise SystemExit("Storage unavailable; check the database settings")

    upsert_user(db, cfg, open_id=args.open_id, name=args.name, email=args.email, login_method="script")
    if args.role:
        with db.connect() as conn:
            set_user_role(conn, args.open_id, args.role)

    print("User:")
    print(find_user_by_open_id(db, args.open_id))


if __name__ == "__main__":
    main()
