import enum


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class PaymentType(str, enum.Enum):
    MEMBERSHIP = "membership"
    EVENT = "event"
    OTHER = "other"


def enum_values(enum_cls):
    """Store enum values (not member names) in the database column."""
    return [member.value for member in enum_cls]
