"""Core primitives for cafe-controller."""

from .models import (
    Command,
    CommandKind,
    CommandReply,
    DISPENSABLE_KINDS,
    ExecutionSlot,
    StockLevel,
    StockSnapshot,
    ValidationResult,
)
from .products import DEFAULT_PRODUCTS, ProductCatalog, ProductProfile
from .protocols import (
    AvailabilitySensor,
    Clock,
    CommandTransport,
    ManagedTransport,
    Switch,
    Valve,
)
from .utils import monotonic_ms, seconds_to_ms

__all__ = [
    "AvailabilitySensor",
    "Clock",
    "Command",
    "CommandKind",
    "CommandReply",
    "CommandTransport",
    "DEFAULT_PRODUCTS",
    "DISPENSABLE_KINDS",
    "ExecutionSlot",
    "ManagedTransport",
    "ProductCatalog",
    "ProductProfile",
    "StockLevel",
    "StockSnapshot",
    "Switch",
    "ValidationResult",
    "Valve",
    "monotonic_ms",
    "seconds_to_ms",
]
