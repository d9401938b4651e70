"""Domain errors for the coin ledger, subscriptions, coupons and leads.

Every error carries the HTTP status it maps to; ``main.py`` registers a
single handler that renders them as ``{"detail": ..., "error": ...}``.
"""


class LeadHubError(Exception):
    status_code = 400
    default_detail = "Request could not be processed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InsufficientFunds(LeadHubError):
    default_detail = "Insufficient LeadCoin balance"

    def __init__(self, detail: str = None, balance: int = None, required: int = None):
        self.balance = balance
        self.required = required
        super().__init__(detail)


class InsufficientCoins(InsufficientFunds):
    default_detail = "Not enough LeadCoins to view this lead"


class CouponNotFound(LeadHubError):
    status_code = 404
    default_detail = "Invalid or inactive coupon code"


class CouponExhausted(LeadHubError):
    default_detail = "This coupon has reached its usage limit"


class AlreadyRedeemed(LeadHubError):
    default_detail = "You have already claimed this coupon"


class SubscriptionNotFound(LeadHubError):
    status_code = 404
    default_detail = "Subscription not found"


class PaymentVerificationFailed(LeadHubError):
    default_detail = "Payment could not be verified"


class ValidationError(LeadHubError):
    status_code = 422
    default_detail = "Invalid input"


class UserNotFound(LeadHubError):
    status_code = 404
    default_detail = "User not found"


class LeadNotFound(LeadHubError):
    status_code = 404
    default_detail = "Lead not found"


class PackageNotFound(LeadHubError):
    status_code = 404
    default_detail = "LeadCoin package not found"


class OperationNotAllowed(LeadHubError):
    default_detail = "This operation is not allowed"


class PermissionDenied(LeadHubError):
    status_code = 403
    default_detail = "You do not have permission to perform this action"


class Conflict(LeadHubError):
    status_code = 409
    default_detail = "Resource already exists"


class TicketNotFound(LeadHubError):
    status_code = 404
    default_detail = "Ticket not found"
