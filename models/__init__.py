# Import models so that SQLAlchemy metadata includes them on app startup
from .user import User  # noqa: F401
from .payment_request import PaymentRequest  # noqa: F401
from .mpesa_payment import MpesaPayment  # noqa: F401
from .mpesa_configuration import MpesaConfiguration  # noqa: F401
from .mpesa_configuration_audit import MpesaConfigurationAudit  # noqa: F401
from .notification import Notification  # noqa: F401
from .enums import PaymentStatus, PaymentType  # noqa: F401
