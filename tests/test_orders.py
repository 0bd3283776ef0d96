"""Order creation end to end against a real database."""
import asyncio
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from conftest import count_orders, fetch_product, line, order_payload
from pizza_orders.exceptions import (
    InvalidReference,
    OrderAccessDenied,
    OrderNotFound,
    OrderProcessingFailed,
    OrderValidationError,
    StockOrReferenceFault,
    TotalMismatch,
)
from pizza_orders.models import OrderStatus, Product
from pizza_orders.services.orders import (
    create_order,
    get_order_by_id,
    get_orders_for_seller,
    get_orders_for_user,
)
from pizza_orders.services.orders import service


async def place(session_maker, payload, **kwargs):
    async with session_maker() as s:
        return await create_order(s, payload, **kwargs)


# =============================================================================
# HAPPY PATH
# =============================================================================

async def test_order_takes_last_units(session_maker, make_product, user_id):
    pizza = await make_product(stock=2, price=10.00)

    order = await place(session_maker, order_payload(user_id, [line(pizza, 2)], total=20.00))

    assert order.status is OrderStatus.PROCESSING
    assert order.total_amount == 20.00
    assert order.items == [{
        "productId": pizza.id,
        "name": "Margherita",
        "quantity": 2,
        "priceAtOrder": 10.00,
        "photo": "https://img.example.com/margherita.jpg",
    }]
    assert order.shipping_address["postalCode"] == "10118"
    assert (await fetch_product(session_maker, pizza.id)).stock == 0

    with pytest.raises(StockOrReferenceFault) as exc_info:
        await place(session_maker, order_payload(user_id, [line(pizza, 1)]))
    assert exc_info.value.errors[0]["available"] == 0
    assert exc_info.value.errors[0]["requested"] == 1
    assert (await fetch_product(session_maker, pizza.id)).stock == 0


async def test_stored_total_is_server_computed(session_maker, make_product, user_id):
    pizza = await make_product(price=10.00)
    order = await place(session_maker, order_payload(user_id, [line(pizza, 2)], total=20.005))
    assert order.total_amount == 20.00


async def test_multi_product_order_decrements_each(session_maker, make_product, user_id):
    a = await make_product(stock=5)
    b = await make_product(name="Pepperoni", price=12.50, stock=3)

    await place(session_maker, order_payload(user_id, [line(a, 2), line(b, 3)]))

    assert (await fetch_product(session_maker, a.id)).stock == 3
    assert (await fetch_product(session_maker, b.id)).stock == 0


async def test_repeated_product_lines_are_decremented_together(session_maker, make_product, user_id):
    pizza = await make_product(stock=5)
    order = await place(session_maker, order_payload(user_id, [line(pizza, 2), line(pizza, 1)]))

    assert len(order.items) == 2
    assert (await fetch_product(session_maker, pizza.id)).stock == 2


# =============================================================================
# REJECTIONS LEAVE STOCK UNTOUCHED
# =============================================================================

async def test_out_of_stock_is_rejected(session_maker, make_product, user_id):
    pizza = await make_product(stock=0)

    with pytest.raises(StockOrReferenceFault) as exc_info:
        await place(session_maker, order_payload(user_id, [line(pizza, 1)]))

    (fault,) = exc_info.value.errors
    assert fault["available"] == 0
    assert fault["requested"] == 1
    assert (await fetch_product(session_maker, pizza.id)).stock == 0
    assert await count_orders(session_maker) == 0


async def test_total_mismatch_mutates_nothing(session_maker, make_product, user_id):
    pizza = await make_product(stock=2)

    with pytest.raises(TotalMismatch):
        await place(session_maker, order_payload(user_id, [line(pizza, 2)], total=19.00))

    assert (await fetch_product(session_maker, pizza.id)).stock == 2
    assert await count_orders(session_maker) == 0


async def test_unknown_product_blocks_whole_order(session_maker, make_product, user_id):
    pizza = await make_product(stock=2)
    missing = str(uuid.uuid4())

    with pytest.raises(StockOrReferenceFault) as exc_info:
        await place(session_maker, order_payload(user_id, [line(pizza, 1), line(missing, 1)]))

    assert exc_info.value.errors == [{"productId": missing, "message": "Product not found"}]
    assert (await fetch_product(session_maker, pizza.id)).stock == 2
    assert await count_orders(session_maker) == 0


async def test_invalid_request_touches_nothing(session_maker, make_product, user_id):
    pizza = await make_product(stock=2)
    payload = order_payload(user_id, [line(pizza, 0)], total=0.0)

    with pytest.raises(OrderValidationError):
        await place(session_maker, payload)

    assert (await fetch_product(session_maker, pizza.id)).stock == 2


async def test_storage_failure_rolls_back_everything(session_maker, make_product, user_id, monkeypatch):
    a = await make_product(stock=5)
    b = await make_product(name="Pepperoni", stock=5)
    real_decrement = service.decrement_stock
    calls = []

    async def failing_decrement(session, product_id, quantity):
        calls.append(product_id)
        if len(calls) == 2:
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))
        await real_decrement(session, product_id, quantity)

    monkeypatch.setattr(service, "decrement_stock", failing_decrement)

    with pytest.raises(OrderProcessingFailed) as exc_info:
        await place(session_maker, order_payload(user_id, [line(a, 1), line(b, 1)]))

    assert exc_info.value.retryable
    assert exc_info.value.to_dict()["retryable"] is True
    assert (await fetch_product(session_maker, a.id)).stock == 5
    assert (await fetch_product(session_maker, b.id)).stock == 5
    assert await count_orders(session_maker) == 0


async def test_slow_commit_times_out(session_maker, make_product, user_id, monkeypatch, configure):
    configure(order_commit_timeout_seconds=0.05)
    pizza = await make_product(stock=2)

    async def stalled_decrement(session, product_id, quantity):
        await asyncio.sleep(5)

    monkeypatch.setattr(service, "decrement_stock", stalled_decrement)

    with pytest.raises(OrderProcessingFailed) as exc_info:
        await place(session_maker, order_payload(user_id, [line(pizza, 1)]))

    assert "timed out" in exc_info.value.message
    assert await count_orders(session_maker) == 0
    assert (await fetch_product(session_maker, pizza.id)).stock == 2


async def test_decrement_refuses_to_go_negative(session_maker, make_product):
    pizza = await make_product(stock=1)

    async with session_maker() as s:
        with pytest.raises(OrderProcessingFailed):
            async with s.begin():
                await service.decrement_stock(s, pizza.id, 2)

    assert (await fetch_product(session_maker, pizza.id)).stock == 1


# =============================================================================
# CONCURRENCY
# =============================================================================

async def test_concurrent_orders_never_oversell(session_maker, make_product):
    pizza = await make_product(stock=1)
    payloads = [order_payload(str(uuid.uuid4()), [line(pizza, 1)]) for _ in range(2)]

    results = await asyncio.gather(
        *(place(session_maker, p) for p in payloads),
        return_exceptions=True,
    )

    committed = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(committed) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0], (StockOrReferenceFault, OrderProcessingFailed))
    assert (await fetch_product(session_maker, pizza.id)).stock == 0
    assert await count_orders(session_maker) == 1


# =============================================================================
# IDENTITY
# =============================================================================

async def test_cannot_order_for_another_user(session_maker, make_product, user_id):
    pizza = await make_product()

    with pytest.raises(OrderAccessDenied):
        await place(
            session_maker,
            order_payload(user_id, [line(pizza)]),
            acting_user_id=str(uuid.uuid4()),
        )
    assert (await fetch_product(session_maker, pizza.id)).stock == 2


async def test_acting_user_must_be_valid_id(session_maker, make_product, user_id):
    pizza = await make_product()
    with pytest.raises(InvalidReference):
        await place(session_maker, order_payload(user_id, [line(pizza)]), acting_user_id="me")


async def test_matching_acting_user_is_accepted(session_maker, make_product, user_id):
    pizza = await make_product()
    order = await place(
        session_maker,
        order_payload(user_id, [line(pizza)]),
        acting_user_id=user_id.upper(),
    )
    assert order.user_id == user_id


# =============================================================================
# READ SIDE
# =============================================================================

async def test_order_history_is_a_frozen_snapshot(session_maker, make_product, user_id):
    pizza = await make_product(price=10.00)
    order = await place(session_maker, order_payload(user_id, [line(pizza, 1)]))

    async with session_maker() as s:
        async with s.begin():
            live = await s.get(Product, pizza.id)
            live.price = 99.0
            live.name = "Renamed"
            live.photo_url = "https://img.example.com/new.jpg"

    async with session_maker() as s:
        before_delete = await get_order_by_id(s, order.id)

    async with session_maker() as s:
        async with s.begin():
            await s.delete(await s.get(Product, pizza.id))

    async with session_maker() as s:
        after_delete = await get_order_by_id(s, order.id)

    for view in (before_delete, after_delete):
        (snapshot,) = view.items
        assert snapshot.name == "Margherita"
        assert snapshot.price_at_order == 10.00
        assert snapshot.photo == "https://img.example.com/margherita.jpg"
    assert before_delete == after_delete


async def test_reads_are_repeatable(session_maker, make_product, user_id):
    pizza = await make_product()
    order = await place(session_maker, order_payload(user_id, [line(pizza)]))

    async with session_maker() as s:
        first = await get_order_by_id(s, order.id)
        second = await get_order_by_id(s, order.id)
    assert first == second


async def test_user_history_is_newest_first(session_maker, make_product, user_id):
    pizza = await make_product(stock=5)
    first = await place(session_maker, order_payload(user_id, [line(pizza)]))
    second = await place(session_maker, order_payload(user_id, [line(pizza)]))
    await place(session_maker, order_payload(str(uuid.uuid4()), [line(pizza)]))

    async with session_maker() as s:
        history = await get_orders_for_user(s, user_id)

    assert history.count == 2
    assert [o.id for o in history.orders] == [second.id, first.id]


async def test_user_without_orders(session, user_id):
    history = await get_orders_for_user(session, user_id)
    assert history.count == 0
    assert history.orders == []


async def test_unknown_order(session):
    with pytest.raises(OrderNotFound):
        await get_order_by_id(session, str(uuid.uuid4()))


async def test_malformed_order_id(session):
    with pytest.raises(InvalidReference):
        await get_order_by_id(session, "42")


async def test_seller_sees_orders_with_their_products(session_maker, make_product, user_id):
    mine = await make_product()
    theirs = await make_product(owner_id=str(uuid.uuid4()))
    mixed = await place(session_maker, order_payload(user_id, [line(mine), line(theirs)]))
    await place(session_maker, order_payload(user_id, [line(theirs)]))

    async with session_maker() as s:
        listing = await get_orders_for_seller(s, mine.owner_id)

    assert [o.id for o in listing.orders] == [mixed.id]


async def test_seller_without_products(session):
    listing = await get_orders_for_seller(session, str(uuid.uuid4()))
    assert listing.count == 0
