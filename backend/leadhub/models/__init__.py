# Import every model so Alembic autogenerate sees the full metadata
from leadhub.models.user import User
from leadhub.models.service_setting import ServiceSetting
from leadhub.models.subscription import Subscription
from leadhub.models.user_subscription import UserSubscription
from leadhub.models.coin_transaction import CoinTransaction
from leadhub.models.lead_category import LeadCategory
from leadhub.models.lead import Lead
from leadhub.models.lead_view import LeadView
from leadhub.models.lead_coin_setting import LeadCoinSetting
from leadhub.models.coupon import Coupon
from leadhub.models.coupon_claim import CouponClaim
from leadhub.models.leadcoin_package import LeadCoinPackage
from leadhub.models.coin_purchase import CoinPurchase
from leadhub.models.notification import Notification
from leadhub.models.support_ticket import SupportTicket
from leadhub.models.support_ticket_reply import SupportTicketReply
from leadhub.models.processed_stripe_event import ProcessedStripeEvent
from leadhub.models.payment_reconciliation import PaymentReconciliation
from leadhub.models.system_log import SystemLog

__all__ = [
    "User",
    "ServiceSetting",
    "Subscription",
    "UserSubscription",
    "CoinTransaction",
    "LeadCategory",
    "Lead",
    "LeadView",
    "LeadCoinSetting",
    "Coupon",
    "CouponClaim",
    "LeadCoinPackage",
    "CoinPurchase",
    "Notification",
    "SupportTicket",
    "SupportTicketReply",
    "ProcessedStripeEvent",
    "PaymentReconciliation",
    "SystemLog",
]
