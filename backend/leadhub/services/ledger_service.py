"""LeadCoin ledger.

``coin_transactions`` is the append-only record of every balance change and
``users.lead_coins`` is its materialized running sum. Both are written in the
same transaction by ``adjust_balance``; nothing else in the codebase assigns
``User.lead_coins`` directly.

Debits are a single conditional UPDATE (``lead_coins >= amount``) so two
concurrent debits can never take the balance below zero. Credits that must
happen at most once (subscription activation, coin purchase, coupon claim,
signup bonus) pass a ``reference``; the unique index on that column rejects a
second entry with the same key.
"""
from typing import Optional

from sqlalchemy import update, select, func as sa_func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from leadhub.core.errors import InsufficientFunds, UserNotFound, ValidationError
from leadhub.core.logging import get_logger
from leadhub.models.user import User
from leadhub.models.coin_transaction import CoinTransaction
from leadhub.services import notification_service
from leadhub.services.mail_service import send_coins_received_email

logger = get_logger(__name__)

TX_SIGNUP_BONUS = "signup_bonus"
TX_SUBSCRIPTION = "subscription"
TX_PURCHASE = "purchase"
TX_ADMIN_TOPUP = "admin_topup"
TX_SPENT = "spent"
TX_COUPON = "coupon"
TX_REFUND = "refund"

TX_TYPES = (
    TX_SIGNUP_BONUS, TX_SUBSCRIPTION, TX_PURCHASE, TX_ADMIN_TOPUP, TX_SPENT, TX_COUPON, TX_REFUND,
)

ADMIN_TOPUP_DESCRIPTION = "Admin Top-up"


class DuplicateLedgerEntry(Exception):
    """A ledger entry with this reference already exists"""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"ledger reference already used: {reference}")


def get_balance(db: Session, user_id: int) -> int:
    balance = db.execute(select(User.lead_coins).where(User.id == user_id)).scalar_one_or_none()
    if balance is None:
        raise UserNotFound()
    return balance


def has_reference(db: Session, reference: str) -> bool:
    return db.query(CoinTransaction.id).filter(CoinTransaction.reference == reference).first() is not None


def _expire_cached_balance(db: Session, user_id: int) -> None:
    """The UPDATE bypasses the ORM; make any loaded User re-read its balance."""
    cached = db.identity_map.get(identity_key(User, user_id))
    if cached is not None:
        db.expire(cached, ["lead_coins"])


def adjust_balance(
    db: Session,
    user_id: int,
    delta: int,
    tx_type: str,
    description: str,
    admin_id: Optional[int] = None,
    reference: Optional[str] = None,
    commit: bool = True,
) -> int:
    """Apply ``delta`` to a user's balance and append the ledger entry.

    Returns the new balance. Raises ``InsufficientFunds`` (balance unchanged)
    when a debit exceeds the balance, ``UserNotFound`` for an unknown user and
    ``DuplicateLedgerEntry`` when ``reference`` was already used.

    With ``commit=False`` the changes are only flushed and the caller owns the
    transaction; on any exception the caller must roll back.
    """
    if delta == 0:
        raise ValidationError("Balance adjustment must be non-zero")
    if tx_type not in TX_TYPES:
        raise ValidationError(f"Unknown transaction type: {tx_type}")

    try:
        stmt = update(User).where(User.id == user_id)
        if delta < 0:
            stmt = stmt.where(User.lead_coins >= -delta)
        result = db.execute(
            stmt.values(lead_coins=User.lead_coins + delta)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # either the user is missing or the debit would go negative
            balance = get_balance(db, user_id)
            raise InsufficientFunds(balance=balance, required=-delta)

        _expire_cached_balance(db, user_id)
        new_balance = get_balance(db, user_id)

        db.add(CoinTransaction(
            user_id=user_id,
            admin_id=admin_id,
            amount=delta,
            type=tx_type,
            description=description,
            balance_after=new_balance,
            reference=reference,
        ))
        try:
            db.flush()
        except IntegrityError:
            if reference is None:
                raise
            raise DuplicateLedgerEntry(reference)

        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    logger.info(
        f"Ledger: user_id={user_id}, delta={delta:+d}, type={tx_type}, "
        f"balance={new_balance}, reference={reference}"
    )
    return new_balance


def credit(db: Session, user_id: int, amount: int, tx_type: str, description: str, **kwargs) -> int:
    if amount <= 0:
        raise ValidationError("Credit amount must be positive")
    return adjust_balance(db, user_id, amount, tx_type, description, **kwargs)


def debit(db: Session, user_id: int, amount: int, tx_type: str, description: str, **kwargs) -> int:
    if amount <= 0:
        raise ValidationError("Debit amount must be positive")
    return adjust_balance(db, user_id, -amount, tx_type, description, **kwargs)


def list_transactions(db: Session, user_id: int, limit: int = 50, offset: int = 0) -> list[CoinTransaction]:
    return (
        db.query(CoinTransaction)
        .filter(CoinTransaction.user_id == user_id)
        .order_by(CoinTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def serialize_transaction(tx: CoinTransaction) -> dict:
    return {
        "id": tx.id,
        "amount": tx.amount,
        "type": tx.type,
        "description": tx.description,
        "balance_after": tx.balance_after,
        "admin_id": tx.admin_id,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
    }


def reconcile_balance(db: Session, user_id: int) -> dict:
    """Compare the materialized balance against the sum of ledger entries"""
    balance = get_balance(db, user_id)
    ledger_total = db.query(sa_func.coalesce(sa_func.sum(CoinTransaction.amount), 0)).filter(
        CoinTransaction.user_id == user_id
    ).scalar()
    drift = balance - int(ledger_total)
    if drift:
        logger.warning(f"Ledger drift: user_id={user_id}, balance={balance}, ledger={ledger_total}")
    return {
        "user_id": user_id,
        "balance": balance,
        "ledger_total": int(ledger_total),
        "drift": drift,
        "consistent": drift == 0,
    }


def grant_coins(
    db: Session,
    user_id: int,
    amount: int,
    admin_id: int,
    description: Optional[str] = None,
) -> int:
    """Admin top-up: ledger credit, in-app notification and a mail to the user"""
    description = (description or "").strip() or ADMIN_TOPUP_DESCRIPTION
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound()

    try:
        new_balance = credit(
            db, user_id, amount, TX_ADMIN_TOPUP, description, admin_id=admin_id, commit=False,
        )
        notification_service.create_notification(
            db,
            user_id=user_id,
            type="coin_received",
            title="LeadCoins received",
            message=f"You received {amount} LeadCoins. {description}",
            details={"amount": amount, "description": description, "admin_id": admin_id},
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Admin top-up: admin_id={admin_id}, user_id={user_id}, amount={amount}")
    send_coins_received_email(user.email, user.name, amount, description, new_balance)
    return new_balance
