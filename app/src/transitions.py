"""
Status transition tables for orders, auctions, billing entries and approvals.

Each table maps a current status to the statuses it may move to. The tables
are enforced through `validators.stateTransition`; no status is written
without consulting them.
"""

from app.src.enums import (
    ApprovalStatus,
    AuctionStatus,
    BillingStatus,
    HandoverType,
    OrderStatus,
)


ORDER_STATUS_TRANSITION = {
    OrderStatus.OPEN: [OrderStatus.ASSIGNED, OrderStatus.CANCELLED],
    OrderStatus.ASSIGNED: [
        OrderStatus.OPEN,
        OrderStatus.IN_PROGRESS,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.IN_PROGRESS: [OrderStatus.COMPLETED, OrderStatus.CANCELLED],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}

# Reachable only through assignment and rejection, never by a plain status write
ORDER_ASSIGNMENT_STATES = [OrderStatus.OPEN, OrderStatus.ASSIGNED]

AUCTION_STATUS_TRANSITION = {
    AuctionStatus.ACTIVE: [AuctionStatus.SOLD, AuctionStatus.CANCELLED],
    AuctionStatus.CANCELLED: [AuctionStatus.ACTIVE],
    AuctionStatus.SOLD: [],
}

BILLING_STATUS_TRANSITION = {
    BillingStatus.PENDING: [
        BillingStatus.APPROVED,
        BillingStatus.REJECTED,
        BillingStatus.CANCELLED,
    ],
    BillingStatus.APPROVED: [BillingStatus.PAID],
    BillingStatus.REJECTED: [],
    BillingStatus.PAID: [],
    BillingStatus.CANCELLED: [],
}

APPROVAL_STATUS_TRANSITION = {
    ApprovalStatus.PENDING: [
        ApprovalStatus.ACCEPTED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.EXPIRED,
    ],
    ApprovalStatus.ACCEPTED: [],
    ApprovalStatus.REJECTED: [],
    ApprovalStatus.EXPIRED: [],
}

# Order status each handover drives the order to
HANDOVER_ORDER_STATUS = {
    HandoverType.PICKUP: OrderStatus.IN_PROGRESS,
    HandoverType.DELIVERY: OrderStatus.COMPLETED,
}

# Order statuses in which each handover may be recorded
HANDOVER_ALLOWED_STATES = {
    HandoverType.PICKUP: [OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS],
    HandoverType.DELIVERY: [OrderStatus.IN_PROGRESS],
}
