"""Notification adapters for follow-up alerts.

Implementations:
- Stdout (terminal pretty-print)
"""
