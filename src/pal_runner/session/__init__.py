"""Execution sessions: command dispatch and subscriber bookkeeping."""

from pal_runner.session.dispatcher import SessionDispatcher
from pal_runner.session.models import Session, SessionStatus
from pal_runner.session.subscribers import Subscriber, SubscriberRegistry

__all__ = [
    "Session",
    "SessionDispatcher",
    "SessionStatus",
    "Subscriber",
    "SubscriberRegistry",
]
