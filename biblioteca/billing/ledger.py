"""
Persistence helpers for the payment ledger and subscription store.

Every write is an ``INSERT ... ON CONFLICT DO UPDATE`` keyed on the table's
unique column, so concurrent writers converge on a single row instead of
racing on read-then-insert.
"""

from sqlalchemy import case, func, or_
from sqlalchemy.dialects import postgresql, sqlite

from biblioteca.domain.billing import (
    LIFETIME_PLAN,
    PaymentStatus,
    SubscriptionStatus,
    origin_value,
    utcnow,
)
from biblioteca.extensions import db
from biblioteca.models.payment import PaymentRequest
from biblioteca.models.subscription import SubscriptionRecord

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert(model):
    dialect = db.session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect](model)
    except KeyError:
        raise RuntimeError(f"Upserts are not supported on the '{dialect}' dialect")


def find_charge(charge_id):
    if not charge_id:
        return None
    charge_id = str(charge_id)
    return PaymentRequest.query.filter(
        or_(PaymentRequest.charge_id == charge_id, PaymentRequest.legacy_charge_id == charge_id)
    ).first()


def latest_charge_for_user(user_id, origins=None, status=None):
    query = PaymentRequest.query.filter_by(user_id=str(user_id))
    if origins:
        query = query.filter(PaymentRequest.origin.in_([origin_value(o) for o in origins]))
    if status:
        query = query.filter(PaymentRequest.status == status)
    return query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc()).first()


def latest_paid_charge(user_id, origins=None):
    query = PaymentRequest.query.filter_by(user_id=str(user_id), status=PaymentStatus.PAID.value)
    if origins:
        query = query.filter(PaymentRequest.origin.in_([origin_value(o) for o in origins]))
    return query.order_by(
        PaymentRequest.paid_at.desc(), PaymentRequest.created_at.desc(), PaymentRequest.id.desc()
    ).first()


def pending_charges_for_user(user_id, limit):
    return (
        PaymentRequest.query
        .filter_by(user_id=str(user_id), status=PaymentStatus.PENDING.value)
        .order_by(PaymentRequest.created_at.desc())
        .limit(limit)
        .all()
    )


def pending_batch(limit):
    """Pending rows, least recently checked first."""
    return (
        PaymentRequest.query
        .filter_by(status=PaymentStatus.PENDING.value)
        .order_by(PaymentRequest.updated_at.asc(), PaymentRequest.id.asc())
        .limit(limit)
        .all()
    )


def iter_paid_charges(page_size):
    """Yield every paid row, paging by primary key."""
    last_id = 0
    while True:
        page = (
            PaymentRequest.query
            .filter(PaymentRequest.status == PaymentStatus.PAID.value, PaymentRequest.id > last_id)
            .order_by(PaymentRequest.id.asc())
            .limit(page_size)
            .all()
        )
        if not page:
            return
        yield from page
        last_id = page[-1].id


def get_subscription(user_id):
    if not user_id:
        return None
    return SubscriptionRecord.query.filter_by(user_id=str(user_id)).first()


def has_active_subscription(user_id):
    record = get_subscription(user_id)
    return record is not None and record.is_active


def upsert_payment_request(charge_id, *, origin, user_id=None, amount=None,
                           currency=None, status=PaymentStatus.PENDING.value,
                           gateway_status=None, raw=None, paid_at=None):
    """
    Insert or update the ledger row for ``charge_id``.

    ``user_id``, ``paid_at`` and ``origin`` keep their first non-null value;
    status, gateway status and the raw payload always take the latest write.
    A row that is already paid never goes back to another status.
    """
    now = utcnow()
    table = PaymentRequest.__table__
    stmt = _insert(PaymentRequest).values(
        charge_id=str(charge_id),
        user_id=str(user_id) if user_id else None,
        amount=amount if amount is not None else 0,
        currency=currency or "BRL",
        origin=origin_value(origin),
        status=status,
        gateway_status=gateway_status,
        raw=raw,
        paid_at=paid_at,
        created_at=now,
        updated_at=now,
    )
    paid = PaymentStatus.PAID.value
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.charge_id],
        set_={
            "user_id": func.coalesce(table.c.user_id, stmt.excluded.user_id),
            "paid_at": func.coalesce(table.c.paid_at, stmt.excluded.paid_at),
            "status": _keep_paid(table.c.status, stmt.excluded.status, paid),
            "gateway_status": func.coalesce(stmt.excluded.gateway_status, table.c.gateway_status),
            "raw": func.coalesce(stmt.excluded.raw, table.c.raw),
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.session.execute(stmt)


def _keep_paid(current, incoming, paid):
    return case((current == paid, current), else_=incoming)


def touch_pending(row, gateway_status, raw=None):
    """Record what the gateway said about a still-unpaid row."""
    row.gateway_status = gateway_status
    if raw is not None:
        row.raw = raw
    row.updated_at = utcnow()


def upsert_subscription(user_id, *, origin, source_charge_id, expires_at):
    now = utcnow()
    table = SubscriptionRecord.__table__
    stmt = _insert(SubscriptionRecord).values(
        user_id=str(user_id),
        status=SubscriptionStatus.ACTIVE.value,
        plan=LIFETIME_PLAN,
        origin=origin_value(origin),
        source_charge_id=str(source_charge_id),
        current_period_end=expires_at,
        cancel_at_period_end=False,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.user_id],
        set_={
            "status": stmt.excluded.status,
            "plan": stmt.excluded.plan,
            "origin": stmt.excluded.origin,
            "source_charge_id": stmt.excluded.source_charge_id,
            "current_period_end": stmt.excluded.current_period_end,
            "cancel_at_period_end": stmt.excluded.cancel_at_period_end,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.session.execute(stmt)
