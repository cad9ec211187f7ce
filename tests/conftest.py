"""Shared fixtures for the Billing service test suite."""

import json

import pytest

from models.notification import NotificationRecord, WebhookEvent

HMAC_SECRET = "44782DEF547AAA06C910C43932B1EB0C71FC68D9D0C057550C48EC2ACF6BA056"
HMAC_SIGNATURE = "coqCmt/IZ4E3CzPvMY8zTjQVL5hYJUiBRg8UU+iCWo0="

EXAMPLE_WEBHOOK_EVENT = {
    "live": "false",
    "notificationItems": [
        {
            "NotificationRequestItem": {
                "additionalData": {
                    "hmacSignature": HMAC_SIGNATURE
                },
                "amount": {
                    "value": 1130,
                    "currency": "EUR"
                },
                "pspReference": "7914073381342284",
                "eventCode": "AUTHORISATION",
                "eventDate": "2019-05-06T17:15:34.121+02:00",
                "merchantAccountCode": "TestMerchant",
                "operations": [
                    "CANCEL",
                    "CAPTURE",
                    "REFUND"
                ],
                "merchantReference": "TestPayment-1407325143704",
                "paymentMethod": "visa",
                "success": "true"
            }
        }
    ]
}


@pytest.fixture()
def hmac_secret() -> str:
    """Hex encoded secret the example event was signed with."""
    return HMAC_SECRET


@pytest.fixture()
def webhook_body() -> str:
    """Raw JSON body of the signed example webhook."""
    return json.dumps(EXAMPLE_WEBHOOK_EVENT)


@pytest.fixture()
def webhook_event() -> WebhookEvent:
    """Parsed example webhook envelope."""
    return WebhookEvent.from_dict(EXAMPLE_WEBHOOK_EVENT)


@pytest.fixture()
def notification(webhook_event: WebhookEvent) -> NotificationRecord:
    """The signed notification item of the example webhook."""
    return webhook_event.notification_items[0]
