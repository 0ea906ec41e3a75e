"""
Revoke a secure link from the command line (e.g. a leaked QR code).
Run: python scripts/revoke_link.py <link_id> --by <admin_id> [--reason "fraud"]
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from securelinks.database import SessionLocal  # noqa: E402
from securelinks.services.link_store import SqlAlchemyLinkStore  # noqa: E402
from securelinks.services.revocation import revoke_link  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Revoke an active secure link")
    parser.add_argument("link_id", help="secure_links.id to revoke")
    parser.add_argument("--by", dest="revoked_by", required=True, help="Principal performing the revocation")
    parser.add_argument("--reason", default=None, help="Free-text reason stored on the link")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        revoked = revoke_link(SqlAlchemyLinkStore(db), args.link_id, args.revoked_by, args.reason)
    finally:
        db.close()
    if revoked:
        print(f"Revoked link {args.link_id}.")
    else:
        print(f"Link {args.link_id} not found or no longer active; nothing changed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
