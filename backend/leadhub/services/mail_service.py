"""Transactional mail (verification codes, password reset, coin notices)"""
import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pathlib import Path
from leadhub.core.config import settings
from leadhub.core.api_keys import get_resend_api_key, get_from_email, get_site_name
from leadhub.core.logging import get_logger

logger = get_logger(__name__)

template_dir = Path(__file__).parent.parent / "templates" / "email"
jinja_env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)


def _send(to_email: str, subject: str, template_name: str, **context) -> bool:
    """Render and send one mail. Failures are logged, never raised."""
    try:
        resend.api_key = get_resend_api_key()
        site_name = get_site_name()
        html = jinja_env.get_template(template_name).render(
            site_name=site_name,
            site_url=settings.SITE_URL,
            **context,
        )
        resend.Emails.send({
            "from": get_from_email(),
            "to": [to_email],
            "subject": f"[{site_name}] {subject}",
            "html": html,
        })
        logger.info(f"Mail sent: template={template_name}, to={to_email}")
        return True
    except Exception as e:
        logger.error(f"Mail send failed: template={template_name}, to={to_email} - {e}")
        return False


def send_verify_code_email(to_email: str, name: str, code: str) -> bool:
    return _send(to_email, "Your verification code", "verify_code.html", name=name, code=code)


def send_password_reset_email(to_email: str, name: str, reset_url: str) -> bool:
    return _send(to_email, "Password reset", "password_reset.html", name=name, reset_url=reset_url)


def send_low_balance_email(to_email: str, name: str, balance: int) -> bool:
    return _send(to_email, "Your LeadCoin balance is low", "low_balance.html", name=name, balance=balance)


def send_coins_received_email(to_email: str, name: str, amount: int, description: str, balance: int) -> bool:
    return _send(
        to_email,
        f"You received {amount} LeadCoins",
        "coins_received.html",
        name=name,
        amount=amount,
        description=description,
        balance=balance,
    )


def send_subscription_activated_email(to_email: str, name: str, plan_name: str, lead_coins: int, end_date) -> bool:
    return _send(
        to_email,
        f"{plan_name} is now active",
        "subscription_activated.html",
        name=name,
        plan_name=plan_name,
        lead_coins=lead_coins,
        end_date=end_date.strftime("%Y-%m-%d") if end_date else None,
    )


def send_inactivity_email(to_email: str, name: str, days: int) -> bool:
    return _send(to_email, "New leads are waiting for you", "inactivity.html", name=name, days=days)
