# Overview: Transactional order-number allocation.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import OrderSequence
from orderdesk.time_utils import utcnow


ORDER_NUMBER_PREFIX = "ORD"


def next_order_number(year: int | None = None, pad: int = 4) -> str:
    """
    Allocate the next "ORD-YYYY-NNNN" number inside the caller's transaction.

    The counter row is updated before it is read, so two writers serialize on
    it; a first-of-year insert race surfaces as an IntegrityError on
    order_sequences and is retried by run_with_retry().
    """
    if year is None:
        year = utcnow().year

    stmt = (
        update(OrderSequence)
        .where(OrderSequence.year == year)
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(OrderSequence.next_number)
            .filter_by(year=year)
            .scalar()
        )
        number = current - 1
    else:
        db.session.add(OrderSequence(year=year, next_number=2))
        db.session.flush()
        number = 1

    return f"{ORDER_NUMBER_PREFIX}-{year}-{number:0{pad}d}"
