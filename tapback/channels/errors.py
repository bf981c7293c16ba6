"""Delivery errors for outbound messages.

Transports raise these so callers can tell a hiccup from a hard failure.
"""


class OutboundDeliveryError(RuntimeError):
    """Base class for outbound delivery errors."""


class TemporaryDeliveryError(OutboundDeliveryError):
    """A transient failure (network, rate limit, server error)."""


class PermanentDeliveryError(OutboundDeliveryError):
    """A permanent failure (bad chat id, missing permissions, rejected payload)."""
