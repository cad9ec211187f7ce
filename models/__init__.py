"""Data models for the Billing service."""

from .notification import NotificationRecord, WebhookEvent

__all__ = ['NotificationRecord', 'WebhookEvent']
