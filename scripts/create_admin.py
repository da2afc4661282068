import os
import sys


def _ensure_import_path() -> None:
    """Allow running as: python scripts/create_admin.py"""
    here = os.path.dirname(os.path.abspath(__file__))
    root_dir = os.path.abspath(os.path.join(here, ".."))
    if root_dir not in sys.path:
        sys.path.insert(0, root_dir)


_ensure_import_path()

from carelink.main import seed_admin_user  # noqa: E402


def main() -> int:
    seed_admin_user()
    print("Admin user ensured")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
