"""
Excel Ledger Verification Script

Verifies data integrity of the order ledger written by the Celery worker.
Run from project root: python scripts/verify.py

Author: Khalil_Bannouri
Version: 1.0.0
"""

import json
import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from pizza_orders.core.config import get_settings

EXCEL_FILE = get_settings().excel_path


def line_total(items_json: str) -> float:
    items = json.loads(items_json)
    return sum(line["priceAtOrder"] * line["quantity"] for line in items)


def verify_excel() -> bool:
    """Verify ledger integrity after a simulation."""

    print("=" * 60)
    print("🔍 ORDER LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {EXCEL_FILE}")
    print("=" * 60)

    if not EXCEL_FILE.exists():
        print("\n❌ Excel file not found!")
        print("   Place some orders with the Celery worker running first.")
        return False

    try:
        df = pd.read_excel(EXCEL_FILE, engine='openpyxl')
        print("\n✅ File loaded successfully!")
    except Exception as e:
        print(f"\n❌ Could not read Excel file: {e}")
        return False

    ok = True

    print("\n📊 STATISTICS:")
    print(f"   Total Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    required = ['order_id', 'user_id', 'items', 'total_amount', 'order_status']
    missing = [col for col in required if col not in df.columns]
    if missing:
        print(f"\n❌ Missing Columns: {missing}")
        return False
    print("\n✅ All required columns present")

    duplicates = df['order_id'].duplicated().sum()
    if duplicates > 0:
        print(f"\n❌ {duplicates} duplicate order IDs found!")
        ok = False
    else:
        print("✅ No duplicate order IDs")

    # Stored total must equal the sum of its snapshot lines
    mismatched = df[
        (df['items'].map(line_total) - df['total_amount']).abs() > 0.01
    ]
    if len(mismatched) > 0:
        print(f"\n❌ {len(mismatched)} order(s) whose total differs from their lines")
        ok = False
    else:
        print("✅ Every total matches its line items")

    print("\n💰 REVENUE:")
    print(f"   Total: ${df['total_amount'].sum():.2f}")
    if len(df) > 0:
        print(f"   Average: ${df['total_amount'].mean():.2f}")

    print("\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = ['order_id', 'item_count', 'total_amount', 'order_status']
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FAILED")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_excel() else 1)
