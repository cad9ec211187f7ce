"""
Payment notification data models.

Represents the webhook notifications pushed by the payment provider.
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


def _text(data: Dict[str, Any], key: str) -> str:
    """Read a signed string field; absent or null becomes an empty string."""
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValueError(f"notification {key} must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class NotificationRecord:
    """
    A single notification item received from the payment provider.

    The first eight fields make up the reference string that the provider
    signs; the remaining fields are informational only.
    """

    # Provider's unique reference for the payment or modification
    psp_reference: str

    # Reference of the original payment for modifications (refunds etc.)
    original_reference: str

    # Merchant account the payment was processed for
    merchant_account_code: str

    # Our own reference for the payment
    merchant_reference: str

    # Amount in minor currency units (e.g. cents)
    amount_value: int

    # ISO 4217 currency code
    amount_currency: str

    # Event type, e.g. AUTHORISATION, CAPTURE, REFUND
    event_code: str

    # "true" or "false", kept as the provider sends it
    success: str

    # Free-form provider data; may contain the hmacSignature
    additional_data: Mapping[str, Any] = field(default_factory=dict)

    event_date: Optional[str] = None
    payment_method: Optional[str] = None
    reason: Optional[str] = None
    operations: Tuple[str, ...] = ()

    def __post_init__(self):
        """Freeze the mutable containers."""
        object.__setattr__(
            self, 'additional_data', MappingProxyType(dict(self.additional_data or {}))
        )
        object.__setattr__(self, 'operations', tuple(self.operations or ()))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NotificationRecord':
        """
        Create a NotificationRecord from a provider NotificationRequestItem.

        Args:
            data: Dictionary decoded from the webhook JSON payload

        Returns:
            NotificationRecord instance

        Raises:
            ValueError: If the item is not an object, a signed field is not a
                string, or the amount is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("notification item must be a JSON object")

        amount = data.get('amount') or {}
        if not isinstance(amount, dict):
            raise ValueError("notification amount must be a JSON object")

        value = amount.get('value', 0)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"notification amount value must be an integer, got {value!r}")

        additional_data = data.get('additionalData') or {}
        if not isinstance(additional_data, dict):
            raise ValueError("notification additionalData must be a JSON object")

        operations = data.get('operations') or []
        if not isinstance(operations, list):
            raise ValueError("notification operations must be a list")

        return cls(
            psp_reference=_text(data, 'pspReference'),
            original_reference=_text(data, 'originalReference'),
            merchant_account_code=_text(data, 'merchantAccountCode'),
            merchant_reference=_text(data, 'merchantReference'),
            amount_value=value,
            amount_currency=_text(amount, 'currency'),
            event_code=_text(data, 'eventCode'),
            success=_text(data, 'success'),
            additional_data=additional_data,
            event_date=data.get('eventDate'),
            payment_method=data.get('paymentMethod'),
            reason=data.get('reason'),
            operations=tuple(operations),
        )

    @property
    def hmac_signature(self) -> Optional[Any]:
        """Raw signature entry from the additional data, if present."""
        return self.additional_data.get('hmacSignature')

    def is_success(self) -> bool:
        """Check whether the provider reported the event as successful."""
        return self.success == 'true'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary using the provider's key names."""
        return {
            'pspReference': self.psp_reference,
            'originalReference': self.original_reference,
            'merchantAccountCode': self.merchant_account_code,
            'merchantReference': self.merchant_reference,
            'amount': {
                'value': self.amount_value,
                'currency': self.amount_currency
            },
            'eventCode': self.event_code,
            'success': self.success,
            'additionalData': dict(self.additional_data),
            'eventDate': self.event_date,
            'paymentMethod': self.payment_method,
            'reason': self.reason,
            'operations': list(self.operations)
        }


@dataclass(frozen=True)
class WebhookEvent:
    """
    The envelope the provider posts to the webhook endpoint.

    A single request may batch several notification items.
    """

    live: str
    notification_items: Tuple[NotificationRecord, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WebhookEvent':
        """
        Create a WebhookEvent from the decoded request body.

        Raises:
            ValueError: If the envelope does not have the expected shape
        """
        if not isinstance(data, dict):
            raise ValueError("webhook payload must be a JSON object")

        items = data.get('notificationItems') or []
        if not isinstance(items, list):
            raise ValueError("notificationItems must be a list")

        live = data.get('live', 'false')
        if isinstance(live, bool):
            live = 'true' if live else 'false'
        elif not isinstance(live, str):
            raise ValueError(f"webhook live flag must be a string or boolean, got {live!r}")

        records = []
        for item in items:
            if not isinstance(item, dict) or 'NotificationRequestItem' not in item:
                raise ValueError("notification item is missing NotificationRequestItem")
            records.append(NotificationRecord.from_dict(item['NotificationRequestItem']))

        return cls(
            live=live,
            notification_items=tuple(records)
        )

    @classmethod
    def from_json(cls, payload: str) -> 'WebhookEvent':
        """Parse a raw JSON webhook body."""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid webhook JSON: {e}") from e
        return cls.from_dict(data)

    def is_live(self) -> bool:
        """Check whether the event came from the live environment."""
        return self.live == 'true'

    def __len__(self) -> int:
        return len(self.notification_items)
