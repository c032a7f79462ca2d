#!/usr/bin/env python3
"""
Backfill: Recompute users.total_paid_ad_days from existing paid ads.

Sums duration_days of every non-FREE ad that has been live (ACTIVE or
EXPIRED) per owner and writes the total, which drives the loyalty grade.
Safe to re-run: totals are recomputed, never incremented.

Run from backend directory:
    python -m scripts.init_ad_grades
"""

import sqlite3
import sys
from pathlib import Path


def backfill(db_path: str = "data/jobboard.db") -> int:
    """Run the backfill; returns the number of users updated."""
    db_path = Path(db_path)
    if not db_path.exists():
        print(f"Database not found at {db_path}")
        return 0

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            SELECT user_id, COALESCE(SUM(duration_days), 0) AS total_days
            FROM ads
            WHERE product_id != 'FREE'
              AND status IN ('ACTIVE', 'EXPIRED')
            GROUP BY user_id
        """)
        rows = cursor.fetchall()
        print(f"Users with paid ads: {len(rows)}")

        updated = 0
        for user_id, total_days in rows:
            if total_days > 0:
                cursor.execute(
                    "UPDATE users SET total_paid_ad_days = ? WHERE id = ?",
                    (total_days, user_id)
                )
                updated += 1
                print(f"  {user_id}: {total_days} days")

        conn.commit()
        print(f"\n=== Backfill Complete: {updated} users updated ===")
        return updated

    except Exception as e:
        conn.rollback()
        print(f"Backfill failed: {e}")
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    backfill(*sys.argv[1:2])
