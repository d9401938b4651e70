"""Lead view gate: pay once per lead, view many times.

The LeadView insert and the ledger debit share one transaction. The unique
index on (user_id, lead_id) decides which of two concurrent first views pays;
the loser rolls back and is answered as an already-viewed lead.
"""
from dataclasses import dataclass, asdict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadhub.core.errors import InsufficientCoins, InsufficientFunds, LeadNotFound, ValidationError
from leadhub.core.logging import get_logger
from leadhub.core.permissions import has_capability, LEAD_FREE_ACCESS
from leadhub.models.lead import Lead
from leadhub.models.lead_coin_setting import LeadCoinSetting
from leadhub.models.lead_view import LeadView
from leadhub.models.user import User
from leadhub.services import ledger_service, notification_service
from leadhub.services.mail_service import send_low_balance_email

logger = get_logger(__name__)

VIEW_TYPES = ("contact_info", "detailed_info", "full_access")


@dataclass
class LeadViewResult:
    granted: bool
    coins_spent: int
    remaining_coins: int
    already_viewed: bool

    def to_dict(self) -> dict:
        return asdict(self)


def get_settings(db: Session) -> LeadCoinSetting:
    """The cost singleton, created with defaults on first use"""
    setting = db.query(LeadCoinSetting).order_by(LeadCoinSetting.id).first()
    if setting is None:
        setting = LeadCoinSetting(contact_info_cost=5, detailed_info_cost=10, full_access_cost=15)
        db.add(setting)
        db.commit()
        db.refresh(setting)
    return setting


def costs_configured(db: Session) -> bool:
    return db.query(LeadCoinSetting.id).first() is not None


def view_cost(setting: LeadCoinSetting, view_type: str) -> int:
    return {
        "contact_info": setting.contact_info_cost,
        "detailed_info": setting.detailed_info_cost,
        "full_access": setting.full_access_cost,
    }[view_type]


def has_viewed(db: Session, user_id: int, lead_id: int) -> bool:
    return db.query(LeadView.id).filter(
        LeadView.user_id == user_id,
        LeadView.lead_id == lead_id,
    ).first() is not None


def viewed_lead_ids(db: Session, user_id: int, lead_ids: list[int]) -> set[int]:
    if not lead_ids:
        return set()
    rows = db.query(LeadView.lead_id).filter(
        LeadView.user_id == user_id,
        LeadView.lead_id.in_(lead_ids),
    ).all()
    return {row[0] for row in rows}


def request_contact_info(
    db: Session,
    user: User,
    lead_id: int,
    view_type: str = "contact_info",
) -> LeadViewResult:
    if view_type not in VIEW_TYPES:
        raise ValidationError(f"view_type must be one of {', '.join(VIEW_TYPES)}")

    lead = db.query(Lead.id, Lead.title).filter(Lead.id == lead_id).first()
    if lead is None:
        raise LeadNotFound()

    if has_capability(user, LEAD_FREE_ACCESS):
        if not has_viewed(db, user.id, lead_id):
            _record_free_view(db, user.id, lead_id, view_type)
        return _already_viewed(db, user.id)

    if has_viewed(db, user.id, lead_id):
        return _already_viewed(db, user.id)

    cost = view_cost(get_settings(db), view_type)
    previous_balance = ledger_service.get_balance(db, user.id)

    try:
        db.add(LeadView(user_id=user.id, lead_id=lead_id, coins_spent=cost, view_type=view_type))
        db.flush()
        if cost > 0:
            remaining = ledger_service.debit(
                db,
                user.id,
                cost,
                ledger_service.TX_SPENT,
                f"Viewed lead #{lead_id}: {lead.title}",
                commit=False,
            )
        else:
            remaining = previous_balance
        db.commit()
    except IntegrityError:
        # a concurrent request recorded the view first and paid for it
        db.rollback()
        logger.info(f"Concurrent lead view resolved: user_id={user.id}, lead_id={lead_id}")
        return _already_viewed(db, user.id)
    except InsufficientFunds as e:
        db.rollback()
        raise InsufficientCoins(
            f"You need {cost} LeadCoins to view this lead but have {e.balance}",
            balance=e.balance,
            required=cost,
        )
    except Exception:
        db.rollback()
        raise

    logger.info(f"Lead viewed: user_id={user.id}, lead_id={lead_id}, cost={cost}, remaining={remaining}")
    _warn_low_balance(db, user, previous_balance, remaining)
    return LeadViewResult(granted=True, coins_spent=cost, remaining_coins=remaining, already_viewed=False)


def _record_free_view(db: Session, user_id: int, lead_id: int, view_type: str) -> None:
    try:
        db.add(LeadView(user_id=user_id, lead_id=lead_id, coins_spent=0, view_type=view_type))
        db.flush()
        db.commit()
        logger.info(f"Staff lead view recorded: user_id={user_id}, lead_id={lead_id}")
    except IntegrityError:
        # recorded by a concurrent request
        db.rollback()
    except Exception:
        db.rollback()
        raise


def _already_viewed(db: Session, user_id: int) -> LeadViewResult:
    return LeadViewResult(
        granted=True,
        coins_spent=0,
        remaining_coins=ledger_service.get_balance(db, user_id),
        already_viewed=True,
    )


def _warn_low_balance(db: Session, user: User, previous: int, current: int) -> None:
    threshold = notification_service.crossed_low_balance_threshold(previous, current)
    if threshold is None:
        return
    try:
        notification_service.notify_low_balance(db, user.id, current, threshold)
    except Exception as e:
        db.rollback()
        logger.error(f"Low balance notification failed: user_id={user.id} - {e}")
        return
    send_low_balance_email(user.email, user.name, current)


def list_user_views(db: Session, user_id: int, limit: int = 100) -> list[dict]:
    rows = (
        db.query(LeadView, Lead.title)
        .join(Lead, Lead.id == LeadView.lead_id)
        .filter(LeadView.user_id == user_id)
        .order_by(LeadView.viewed_at.desc(), LeadView.id.desc())
        .limit(limit)
        .all()
    )
    return [_serialize_view(view, title) for view, title in rows]


def list_all_views(db: Session, page: int = 1, per_page: int = 50) -> dict:
    q = (
        db.query(LeadView, Lead.title, User.email)
        .join(Lead, Lead.id == LeadView.lead_id)
        .join(User, User.id == LeadView.user_id)
    )
    total = q.count()
    rows = q.order_by(LeadView.viewed_at.desc(), LeadView.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "views": [dict(_serialize_view(view, title), user_email=email) for view, title, email in rows],
    }


def _serialize_view(view: LeadView, lead_title: str) -> dict:
    return {
        "id": view.id,
        "user_id": view.user_id,
        "lead_id": view.lead_id,
        "lead_title": lead_title,
        "coins_spent": view.coins_spent,
        "view_type": view.view_type,
        "viewed_at": view.viewed_at.isoformat() if view.viewed_at else None,
    }
