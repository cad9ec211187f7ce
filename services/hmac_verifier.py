"""
Webhook HMAC Verification.

Authenticates payment notifications signed by the provider with a
shared HMAC-SHA256 key. The signed payload is a colon-joined reference
string built from fixed notification fields; the signature travels in
the notification's additionalData under ``hmacSignature``.
"""

import base64
import binascii
import hashlib
import hmac

from models.notification import NotificationRecord

SIGNATURE_KEY = 'hmacSignature'


class VerificationError(Exception):
    """Base class for notification verification failures."""


class MissingSignatureError(VerificationError):
    """The notification does not carry an HMAC signature."""

    def __init__(self, message: str = "HMAC signature is missing"):
        super().__init__(message)


class InvalidSecretError(VerificationError):
    """The configured HMAC secret is not a hex encoded string."""

    def __init__(self, message: str = "HMAC secret must be a hex encoded string"):
        super().__init__(message)


class InvalidSignatureError(VerificationError):
    """The HMAC signature does not match the notification."""

    def __init__(self, message: str = "invalid HMAC signature"):
        super().__init__(message)


def canonical_reference(notification: NotificationRecord) -> str:
    """
    Build the reference string the provider signs.

    Field values are joined as-is; a colon inside a value is not escaped.
    """
    return ':'.join([
        notification.psp_reference,
        notification.original_reference,
        notification.merchant_account_code,
        notification.merchant_reference,
        str(notification.amount_value),
        notification.amount_currency,
        notification.event_code,
        notification.success,
    ])


def decode_secret(secret: str) -> bytes:
    """
    Decode a hex encoded HMAC secret.

    Raises:
        InvalidSecretError: If the secret is not valid hex
    """
    try:
        return binascii.unhexlify(secret)
    except (ValueError, TypeError) as e:
        raise InvalidSecretError() from e


def compute_signature(notification: NotificationRecord, key: bytes) -> str:
    """Compute the base64 encoded HMAC-SHA256 of the reference string."""
    digest = hmac.new(
        key,
        canonical_reference(notification).encode('utf-8'),
        hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode('ascii')


def sign_notification(notification: NotificationRecord, secret: str) -> str:
    """
    Sign a notification the way the provider does.

    Args:
        notification: Notification to sign
        secret: Hex encoded HMAC secret

    Returns:
        Base64 encoded signature
    """
    return compute_signature(notification, decode_secret(secret))


def verify_hmac(notification: NotificationRecord, secret: str) -> None:
    """
    Verify the HMAC signature embedded in a notification.

    Args:
        notification: Parsed notification item
        secret: Hex encoded HMAC secret from configuration

    Raises:
        MissingSignatureError: No usable signature in additionalData
        InvalidSecretError: The secret is not hex encoded
        InvalidSignatureError: The signature does not match
    """
    expected = notification.additional_data.get(SIGNATURE_KEY)
    if not isinstance(expected, str) or not expected:
        raise MissingSignatureError()

    key = decode_secret(secret)
    signature = compute_signature(notification, key)

    if not hmac.compare_digest(signature.encode('ascii'), expected.encode('utf-8')):
        raise InvalidSignatureError()
