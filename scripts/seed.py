"""
Catalog Seed Script

Creates the tables and inserts a small pizza catalog for local testing.
Run from project root: python scripts/seed.py [--stock N]

Prints the seller id and product ids so simulate.py can target them.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import argparse
import asyncio
import os
import sys
import uuid

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from pizza_orders.database import async_session_maker, engine, init_db
from pizza_orders.models import Crust, PizzaSize, Product, ProductCategory

MENU = [
    ("Margherita", 9.99, ProductCategory.VEGETARIAN, Crust.THIN, PizzaSize.SOLO),
    ("Pepperoni", 12.49, ProductCategory.NON_VEGETARIAN, Crust.THIN, PizzaSize.PARTY),
    ("Veggie Supreme", 13.99, ProductCategory.VEGETARIAN, Crust.THICK, PizzaSize.FAMILY),
    ("BBQ Chicken", 14.99, ProductCategory.NON_VEGETARIAN, Crust.THICK, PizzaSize.PARTY),
]


async def seed(stock: int) -> None:
    await init_db()
    seller_id = str(uuid.uuid4())

    async with async_session_maker() as session:
        async with session.begin():
            products = [
                Product(
                    owner_id=seller_id,
                    name=name,
                    description=f"{size.value.title()} {name} on a {crust.value} crust",
                    price=price,
                    stock=stock,
                    category=category,
                    crust=crust,
                    size=size,
                    photo_url=f"https://img.example.com/pizzas/{name.lower().replace(' ', '-')}.jpg",
                )
                for name, price, category, crust, size in MENU
            ]
            session.add_all(products)

    print(f"Seller: {seller_id}")
    for product in products:
        print(f"  {product.id}  {product.name:<16} ${product.price:>6.2f}  stock={product.stock}")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the pizza catalog")
    parser.add_argument("--stock", type=int, default=20, help="Initial stock per product")
    args = parser.parse_args()
    asyncio.run(seed(args.stock))


if __name__ == "__main__":
    main()
