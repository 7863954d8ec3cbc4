"""
API Endpoint URL Constants

Relative paths of every resource exposed by the Vehicle Transport Portal.
They are typically prefixed by the API gateway or service base URL.
"""

# -------------------------------
# Account & Tokens
# -------------------------------
URL_ACCOUNT = "/account"
URL_ACCOUNT_TOKEN = "/account/token"

# -------------------------------
# Orders
# -------------------------------
URL_ORDER = "/order"
URL_ORDER_ASSIGN = "/order/assign"
URL_ORDER_ACCEPT = "/order/accept"
URL_ORDER_REJECT = "/order/reject"
URL_ORDER_STATUS = "/order/status"
URL_ORDER_HANDOVER = "/order/handover"
URL_ORDER_APPROVAL = "/order/approval"

# -------------------------------
# Auctions
# -------------------------------
URL_AUCTION = "/auction"
URL_AUCTION_STATUS = "/auction/status"
URL_AUCTION_PURCHASE = "/auction/purchase"

# -------------------------------
# Billing
# -------------------------------
URL_BILLING = "/billing"
URL_BILLING_PENDING = "/billing/pending"
URL_BILLING_COMPLETION = "/billing/completion"
URL_BILLING_STATUS = "/billing/status"
URL_BILLING_PAID = "/billing/paid"

# -------------------------------
# Service
# -------------------------------
URL_HEALTH = "/health"
