"""
Inference orchestration: sessions, deadlines and admission control.

- SessionPool / InferenceSession: per-stage session lifecycle
- BoundedInvoker: deadline race around a single generation
- ConcurrencyGate / KeyedLock: admission control and per-key serialization
"""

from jobmail_inference.inference.concurrency import ConcurrencyGate, KeyedLock
from jobmail_inference.inference.exceptions import (
    InferenceError,
    InferenceTimeoutError,
    SessionInitError,
)
from jobmail_inference.inference.invoker import BoundedInvoker
from jobmail_inference.inference.session_pool import InferenceSession, SessionPool, StageConfig

__all__ = [
    "BoundedInvoker",
    "ConcurrencyGate",
    "InferenceError",
    "InferenceSession",
    "InferenceTimeoutError",
    "KeyedLock",
    "SessionInitError",
    "SessionPool",
    "StageConfig",
]
