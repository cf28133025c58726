"""
Sequence allocation for human-readable document numbers
"""
import re
from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_core.errors import AllocationError
from finance_core.models.sequence import DocumentKind, DocumentSequence, DOCUMENT_PREFIXES
from finance_core.utils.db_compat import upsert
from finance_core.utils.logger import get_logger

logger = get_logger(__name__)


def period_prefix_for(issued_on: Union[date, datetime]) -> str:
    """Numbers restart every calendar year"""
    return f"{issued_on.year:04d}"


def vendor_code(name: Optional[str]) -> str:
    """First three characters of the supplier name, letters only, e.g. "Acme Pte" -> "ACM" """
    code = re.sub(r"[^A-Z]", "", (name or "")[:3].upper())
    return code or "GEN"


def format_number(
    kind: DocumentKind,
    number: int,
    issued_on: Union[date, datetime],
    counterpart_code: Optional[str] = None,
) -> str:
    """PO-001-ACM-20250314 / INV-007-20250314 / PAY-012-20250314"""
    parts = [DOCUMENT_PREFIXES[kind], f"{number:03d}"]
    if counterpart_code:
        parts.append(counterpart_code)
    parts.append(issued_on.strftime("%Y%m%d"))
    return "-".join(parts)


class SequenceAllocator:
    """
    Hands out the next number for a (kind, period) scope.

    The counter row is incremented with a single INSERT ... ON CONFLICT DO
    UPDATE ... RETURNING on the caller's session, so the increment belongs to
    the caller's transaction: committing spends the number, rolling back
    returns it. Two concurrent transactions serialize on the row (or on the
    SQLite write lock) and can never read the same value.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def allocate(self, kind: DocumentKind, period_prefix: str) -> int:
        table = DocumentSequence.__table__
        stmt = upsert(
            self.session,
            table,
            values={
                "kind": kind.value,
                "period_prefix": period_prefix,
                "current_value": 1,
                "updated_at": datetime.utcnow(),
            },
            index_elements=["kind", "period_prefix"],
            update={
                "current_value": table.c.current_value + 1,
                "updated_at": datetime.utcnow(),
            },
        ).returning(table.c.current_value)

        try:
            result = await self.session.execute(stmt)
            number = result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Sequence allocation failed for {kind.value}/{period_prefix}: {e}")
            raise AllocationError(kind.value, period_prefix) from e

        logger.debug(f"Allocated {kind.value} #{number} for period {period_prefix}")
        return number

    async def current(self, kind: DocumentKind, period_prefix: str) -> int:
        """Last committed-or-pending number in the scope, 0 when unused"""
        result = await self.session.execute(
            select(DocumentSequence.current_value).where(
                DocumentSequence.kind == kind.value,
                DocumentSequence.period_prefix == period_prefix,
            )
        )
        return result.scalar_one_or_none() or 0

    async def next_number(
        self,
        kind: DocumentKind,
        issued_on: Union[date, datetime],
        counterpart_code: Optional[str] = None,
    ) -> str:
        """Allocate within the issue year and format the document number"""
        number = await self.allocate(kind, period_prefix_for(issued_on))
        return format_number(kind, number, issued_on, counterpart_code)
