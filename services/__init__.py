"""Services module for the Billing service."""

from .hmac_verifier import (
    InvalidSecretError,
    InvalidSignatureError,
    MissingSignatureError,
    VerificationError,
    verify_hmac
)
from .lifecycle import (
    DrainTimeoutError,
    LifecycleError,
    LifecycleManager,
    ListenError,
    ServeError
)
from .status import ServerStatus, StatusGuard

__all__ = [
    'VerificationError',
    'MissingSignatureError',
    'InvalidSecretError',
    'InvalidSignatureError',
    'verify_hmac',
    'LifecycleManager',
    'LifecycleError',
    'ListenError',
    'ServeError',
    'DrainTimeoutError',
    'ServerStatus',
    'StatusGuard'
]
