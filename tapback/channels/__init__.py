"""Messaging transports."""

from tapback.channels.base import BaseChannel
from tapback.channels.console import ConsoleChannel
from tapback.channels.errors import (
    OutboundDeliveryError,
    PermanentDeliveryError,
    TemporaryDeliveryError,
)
from tapback.channels.linq import LinqChannel

__all__ = [
    "BaseChannel",
    "ConsoleChannel",
    "LinqChannel",
    "OutboundDeliveryError",
    "PermanentDeliveryError",
    "TemporaryDeliveryError",
]
