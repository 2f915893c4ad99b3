class CafeOrdersError(Exception):
    """Base class for domain errors surfaced by the services."""


class OrderNotFound(CafeOrdersError):
    def __init__(self, order_id: str):
        super().__init__(f"order not found: {order_id}")
        self.order_id = order_id


class OverrideConflict(CafeOrdersError):
    """Requested override contradicts a terminal payment state already reached."""


class InvalidStatusChange(CafeOrdersError):
    pass


class CheckoutError(CafeOrdersError):
    pass


class MalformedNotification(CafeOrdersError):
    pass


class PaymentProviderError(CafeOrdersError):
    """The payment provider's API could not be reached or refused the request."""
