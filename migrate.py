"""
Idempotent schema upgrade for an existing SQLite calendar DB.
Run:  python migrate.py [path/to/dorado.db]

What it does:
- Add start, end, repeat, until, ex_dates, overrides, timestamps to calendar_event
- Backfill start/end from the legacy day-only `date` column (12:00-13:00)
- Normalize category to lower case and empty repeat to 'none'
"""
import sqlite3
import sys
from pathlib import Path

DB_PATH = Path("instance") / "dorado.db"


def table_exists(cur, name: str) -> bool:
    cur.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,))
    return cur.fetchone() is not None


def column_exists(cur, table: str, column: str) -> bool:
    cur.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cur.fetchall())


def add_column(cur, table: str, column: str, col_type: str, default_sql: str | None = None):
    if column_exists(cur, table, column):
        print(f"[skip] {table}.{column} exists")
        return
    cur.execute(f'ALTER TABLE {table} ADD COLUMN "{column}" {col_type}')
    if default_sql is not None:
        cur.execute(f'UPDATE {table} SET "{column}" = {default_sql} WHERE "{column}" IS NULL')
    print(f"[add] {table}.{column}")


def ensure_calendar_event(cur):
    if not table_exists(cur, "calendar_event"):
        print("[warn] calendar_event missing; start the app once to create it")
        return False
    add_column(cur, "calendar_event", "start", "DATETIME")
    add_column(cur, "calendar_event", "end", "DATETIME")
    add_column(cur, "calendar_event", "repeat", "VARCHAR(30) DEFAULT 'none'", default_sql="'none'")
    add_column(cur, "calendar_event", "until", "DATETIME")
    add_column(cur, "calendar_event", "ex_dates", "JSON")
    add_column(cur, "calendar_event", "overrides", "JSON")
    add_column(cur, "calendar_event", "created_at", "DATETIME")
    add_column(cur, "calendar_event", "updated_at", "DATETIME")
    return True


def backfill_legacy_days(cur):
    if not column_exists(cur, "calendar_event", "date"):
        return
    cur.execute(
        "UPDATE calendar_event SET \"start\" = date || ' 12:00:00.000000' "
        "WHERE \"start\" IS NULL AND date IS NOT NULL"
    )
    print(f"[update] backfilled start from date ({cur.rowcount} rows)")
    cur.execute(
        "UPDATE calendar_event SET \"end\" = date || ' 13:00:00.000000' "
        "WHERE \"end\" IS NULL AND date IS NOT NULL"
    )


def normalize_values(cur):
    cur.execute("UPDATE calendar_event SET category = lower(category) WHERE category IS NOT NULL")
    cur.execute("UPDATE calendar_event SET \"repeat\" = 'none' WHERE \"repeat\" IS NULL OR \"repeat\" = ''")
    print("[update] normalized category and repeat")


def main(db_path=DB_PATH):
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    try:
        if ensure_calendar_event(cur):
            backfill_legacy_days(cur)
            normalize_values(cur)
        conn.commit()
        print("Migration complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else DB_PATH)
