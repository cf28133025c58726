"""
Sequence allocator tests - numbering, scoping, rollback and concurrent allocation
"""
import asyncio
from datetime import date, datetime

import pytest

from finance_core.database import Base, make_engine, make_session_factory
from finance_core.models.sequence import DocumentKind
from finance_core.services.sequence_allocator import (
    SequenceAllocator, format_number, period_prefix_for, vendor_code,
)


# ===================== FORMATTING =====================


def test_vendor_code_takes_first_three_letters():
    assert vendor_code("Acme Builders") == "ACM"
    assert vendor_code("abc pte ltd") == "ABC"


def test_vendor_code_drops_non_letters():
    assert vendor_code("3M Singapore") == "M"
    assert vendor_code("A-1 Electrical") == "A"


def test_vendor_code_falls_back_to_generic():
    assert vendor_code("") == "GEN"
    assert vendor_code(None) == "GEN"
    assert vendor_code("123 Supplies") == "GEN"


def test_period_prefix_is_issue_year():
    assert period_prefix_for(date(2025, 3, 14)) == "2025"
    assert period_prefix_for(datetime(2026, 1, 1, 8, 30)) == "2026"


def test_format_purchase_order_number():
    number = format_number(DocumentKind.PURCHASE_ORDER, 1, date(2025, 3, 14), "ACM")
    assert number == "PO-001-ACM-20250314"


def test_format_without_counterpart():
    assert format_number(DocumentKind.CUSTOMER_INVOICE, 7, date(2025, 3, 14)) == "INV-007-20250314"
    assert format_number(DocumentKind.SUPPLIER_INVOICE, 12, date(2025, 3, 14)) == "SINV-012-20250314"
    assert format_number(DocumentKind.PAYMENT, 1234, date(2025, 3, 14)) == "PAY-1234-20250314"


# ===================== ALLOCATION =====================


async def test_first_allocation_is_one(db_session):
    allocator = SequenceAllocator(db_session)
    assert await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025") == 1
    await db_session.commit()
    assert await allocator.current(DocumentKind.PURCHASE_ORDER, "2025") == 1


async def test_allocations_are_sequential(db_session):
    allocator = SequenceAllocator(db_session)
    numbers = []
    for _ in range(5):
        numbers.append(await allocator.allocate(DocumentKind.PAYMENT, "2025"))
        await db_session.commit()
    assert numbers == [1, 2, 3, 4, 5]


async def test_scopes_are_independent(db_session):
    allocator = SequenceAllocator(db_session)
    await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025")
    await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025")
    await db_session.commit()

    assert await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2026") == 1
    assert await allocator.allocate(DocumentKind.CUSTOMER_INVOICE, "2025") == 1
    assert await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025") == 3


async def test_unused_scope_reads_zero(db_session):
    allocator = SequenceAllocator(db_session)
    assert await allocator.current(DocumentKind.SUPPLIER_INVOICE, "2030") == 0


async def test_rollback_returns_the_number(db_session):
    allocator = SequenceAllocator(db_session)
    await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025")
    await db_session.commit()

    assert await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025") == 2
    await db_session.rollback()

    assert await allocator.current(DocumentKind.PURCHASE_ORDER, "2025") == 1
    assert await allocator.allocate(DocumentKind.PURCHASE_ORDER, "2025") == 2


async def test_next_number_formats_with_issue_date(db_session):
    allocator = SequenceAllocator(db_session)
    number = await allocator.next_number(DocumentKind.PURCHASE_ORDER, date(2025, 3, 14), "ACM")
    assert number == "PO-001-ACM-20250314"
    number = await allocator.next_number(DocumentKind.PURCHASE_ORDER, date(2025, 11, 2), "BOL")
    assert number == "PO-002-BOL-20251102"


# ===================== CONCURRENCY =====================


@pytest.fixture()
def file_engine(tmp_path):
    return make_engine(f"sqlite:///{tmp_path / 'sequences.db'}")


async def test_concurrent_allocations_are_distinct(file_engine):
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = make_session_factory(file_engine)

    async def allocate_one():
        async with session_factory() as session:
            number = await SequenceAllocator(session).allocate(DocumentKind.PURCHASE_ORDER, "2025")
            await session.commit()
            return number

    try:
        numbers = await asyncio.gather(*(allocate_one() for _ in range(12)))
    finally:
        await file_engine.dispose()

    assert sorted(numbers) == list(range(1, 13))
