from enum import Enum, IntEnum


class RoleId(IntEnum):
    ADMIN = 1
    OWNER = 2


class StudentStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class FeeFrequency(str, Enum):
    MONTHLY = "Monthly"
    ONE_TIME = "One-Time"


class PaymentMode(str, Enum):
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"
    BANK = "BANK"
    CHEQUE = "CHEQUE"


class DueStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"
    carried = "carried"
