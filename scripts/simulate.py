"""
Stock Race Simulation Script

Fires many concurrent single-unit orders at one product and checks that
the API never sells more units than were in stock.
Run from project root: python scripts/simulate.py --product <id> --price 9.99 --stock 20

Seed a catalog first with scripts/seed.py.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import argparse
import asyncio
import os
import random
import sys
import time
import uuid
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:5000"
TOTAL_ORDERS = 50

STREETS = ["Main St", "Broadway", "5th Avenue", "Park Ave", "Madison Ave", "Lexington Ave", "Amsterdam Ave"]
PAYMENT_METHODS = ["credit_card", "debit_card", "paypal", "cash_on_delivery"]


def generate_order_payload(product_id: str, price: float) -> dict[str, Any]:
    """One-unit order for a random customer."""
    return {
        "userId": str(uuid.uuid4()),
        "items": [{
            "productId": product_id,
            "name": "Simulated Pizza",
            "quantity": 1,
            "priceAtOrder": price,
        }],
        "totalAmount": price,
        "shippingAddress": {
            "street": f"{random.randint(1, 999)} {random.choice(STREETS)}",
            "city": "New York",
            "state": "NY",
            "postalCode": "10001",
            "country": "US",
        },
        "paymentMethod": random.choice(PAYMENT_METHODS),
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    product_id: str,
    price: float,
) -> dict[str, Any]:
    """Send one order and classify the outcome."""
    payload = generate_order_payload(product_id, price)
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=payload,
            timeout=30.0
        )
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "outcome": "error",
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }

    elapsed = round(time.time() - start_time, 3)
    data = response.json()

    if response.status_code == 201:
        outcome = "success"
    elif data.get("retryable"):
        outcome = "retryable"
    elif response.status_code == 400 and data.get("errors"):
        outcome = "stock_fault"
    else:
        outcome = "error"

    return {
        "order_num": order_num,
        "outcome": outcome,
        "order_id": (data.get("order") or {}).get("id"),
        "error": data.get("message"),
        "time": elapsed,
    }


async def run_simulation(
    product_id: str,
    price: float,
    stock: int,
    num_orders: int = TOTAL_ORDERS,
) -> dict[str, Any]:
    """
    Run the race.

    Args:
        product_id: Product every order competes for
        price: Current unit price of the product
        stock: Units in stock before the run
        num_orders: Number of concurrent orders
    """
    print("=" * 70)
    print("🔥 STOCK RACE SIMULATION")
    print("=" * 70)
    print(f"📋 Orders: {num_orders} x 1 unit")
    print(f"📦 Stock before: {stock}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        tasks = [send_order(client, i + 1, product_id, price) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)
    total_time = round(time.time() - start_time, 2)

    by_outcome: dict[str, list] = {}
    for r in results:
        by_outcome.setdefault(r["outcome"], []).append(r)

    sold = len(by_outcome.get("success", []))
    print(f"\n✅ Committed: {sold}")
    print(f"📦 Stock faults: {len(by_outcome.get('stock_fault', []))}")
    print(f"🔁 Retryable failures: {len(by_outcome.get('retryable', []))}")
    print(f"❌ Errors: {len(by_outcome.get('error', []))}")
    print(f"⏱️  Total Time: {total_time}s")

    for r in by_outcome.get("error", [])[:5]:
        print(f"   Order #{r['order_num']}: {r.get('error', 'Unknown error')}")

    oversold = sold > stock
    print("\n" + "=" * 70)
    if oversold:
        print(f"❌ OVERSOLD: {sold} orders committed for {stock} units")
    else:
        print(f"✅ No overselling ({sold}/{stock} units sold)")
    print("=" * 70)

    return {
        "total": num_orders,
        "sold": sold,
        "oversold": oversold,
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Stock Race Simulation Script")
    parser.add_argument("--product", required=True, help="Product id to order")
    parser.add_argument("--price", type=float, required=True, help="Unit price of the product")
    parser.add_argument("--stock", type=int, required=True, help="Stock before the run")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args.product, args.price, args.stock, args.orders))
    sys.exit(1 if summary["oversold"] else 0)
