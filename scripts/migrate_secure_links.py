"""
Create secure_links and link_access_log tables if they do not exist, and add the
link_access_log session columns to tables created before they existed.
For a NEW database: not needed; startup runs create_all() with both models.
Run once on an EXISTING DB: python scripts/migrate_secure_links.py (from project root)
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import inspect, text  # noqa: E402
from securelinks.database import engine  # noqa: E402
from securelinks.models.access_log import LinkAccessLog  # noqa: E402
from securelinks.models.secure_link import SecureLink  # noqa: E402

ACCESS_LOG_COLUMNS = [
    ("session_id", "VARCHAR(36)"),
    ("session_duration_seconds", "INTEGER"),
]


def main():
    insp = inspect(engine)
    existing = set(insp.get_table_names())
    # secure_links first: link_access_log.link_id references it
    for model in (SecureLink, LinkAccessLog):
        name = model.__tablename__
        if name in existing:
            print(f"  skip (exists): {name}")
        else:
            model.__table__.create(engine)
            print(f"  created: {name}")

    columns = {c["name"] for c in inspect(engine).get_columns("link_access_log")}
    with engine.begin() as conn:
        for col, col_type in ACCESS_LOG_COLUMNS:
            if col in columns:
                print(f"  skip (exists): link_access_log.{col}")
                continue
            conn.execute(text(f'ALTER TABLE link_access_log ADD COLUMN "{col}" {col_type}'))
            print(f"  added: link_access_log.{col}")
    print("Done.")


if __name__ == "__main__":
    main()
