import os
import sys


def _ensure_import_path() -> None:
    """Allow running as: python scripts/normalize_verification_statuses.py"""
    here = os.path.dirname(os.path.abspath(__file__))
    root_dir = os.path.abspath(os.path.join(here, ".."))
    if root_dir not in sys.path:
        sys.path.insert(0, root_dir)


_ensure_import_path()

from carelink.core.db import SessionLocal  # noqa: E402
from carelink.services.verification import normalize_stored_statuses  # noqa: E402


def main() -> int:
    db = SessionLocal()
    try:
        changed = normalize_stored_statuses(db)
        print(f"Verification rows rewritten: {changed}")
        return 0
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
