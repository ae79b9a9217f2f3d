"""Exception hierarchy for the delivery index."""


class DeliveryIndexError(Exception):
    """Base class for errors raised by this package."""


class EventRejectedError(DeliveryIndexError):
    """
    A single event cannot be applied and must be skipped, not retried.

    Consumers log these and commit the offset so the queue moves on.
    """

    def __init__(self, message: str, order_id: str = ""):
        super().__init__(message)
        self.order_id = order_id


class InvalidTimestampError(EventRejectedError):
    """The event timestamp could not be parsed into a sort score."""

    def __init__(self, timestamp: str, order_id: str = ""):
        super().__init__(f"Unparsable event timestamp: {timestamp!r}", order_id=order_id)
        self.timestamp = timestamp


class StoreBackendError(DeliveryIndexError):
    """The configured index store backend is unknown or unusable."""
