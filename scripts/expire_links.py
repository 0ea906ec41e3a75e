"""
Run the link expiry sweep once, outside the app scheduler.
Run: python scripts/expire_links.py (from project root)
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from securelinks.database import SessionLocal  # noqa: E402
from securelinks.services.link_expiry import expire_stale_links  # noqa: E402


def main():
    db = SessionLocal()
    try:
        expired = expire_stale_links(db)
        print(f"Marked {expired} active link(s) as expired.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
