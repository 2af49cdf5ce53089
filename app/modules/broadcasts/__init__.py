# modules/broadcasts/__init__.py
"""Broadcast notification module.

Sends one message to many recipients over chat, email and SMS, and tracks
per-recipient delivery and read state.

Features:
- Draft, scheduled and immediate broadcasts
- Bounded worker pool with per-channel retry
- Idempotent per-recipient delivery records
- Cron-triggered reconciliation of due and unfinished broadcasts
- Message centre read receipts and unread counts
"""
