"""Concurrent dispatch of committee tasks to isolated execution units."""

from .dispatcher import (
    SIGNAL_CRASH,
    SIGNAL_DEADLINE,
    SIGNAL_EXIT,
    SIGNAL_MESSAGE,
    Settlement,
    TaskDispatcher,
    default_provider_factory,
    dispatch,
)
from .unit import Channel, ChannelClosed, ExecutionUnit, ProviderFactory

__all__ = [
    "SIGNAL_CRASH",
    "SIGNAL_DEADLINE",
    "SIGNAL_EXIT",
    "SIGNAL_MESSAGE",
    "Channel",
    "ChannelClosed",
    "ExecutionUnit",
    "ProviderFactory",
    "Settlement",
    "TaskDispatcher",
    "default_provider_factory",
    "dispatch",
]
