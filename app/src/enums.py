from enum import IntEnum


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class UserRole(IntEnum):
    ADMIN = 1
    DISPONENT = 2
    DRIVER = 3


class AccountStatus(IntEnum):
    PENDING = 1
    ACTIVE = 2
    INACTIVE = 3


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class OrderStatus(IntEnum):
    OPEN = 1
    ASSIGNED = 2
    IN_PROGRESS = 3
    COMPLETED = 4
    CANCELLED = 5


class AuctionStatus(IntEnum):
    ACTIVE = 1
    SOLD = 2
    CANCELLED = 3


class BillingType(IntEnum):
    ORDER_PAYMENT = 1
    CANCELLATION_FEE = 2
    CREDIT = 3
    DEBIT = 4
    COMPLETION_PAYMENT = 5


class BillingStatus(IntEnum):
    PENDING = 1
    APPROVED = 2
    REJECTED = 3
    PAID = 4
    CANCELLED = 5


class HandoverType(IntEnum):
    PICKUP = 1
    DELIVERY = 2


class ApprovalType(IntEnum):
    ASSIGNMENT = 1
    AUCTION_PURCHASE = 2
    PRICE_ADJUSTMENT = 3


class ApprovalStatus(IntEnum):
    PENDING = 1
    ACCEPTED = 2
    REJECTED = 3
    EXPIRED = 4
