"""
Notification package: templates, delivery and reminder scheduling.

Public API:
    - template_engine: default and per-guild message templates
    - notification_dispatcher: rate-limited delivery with a retry queue
    - notification_service: preference-aware entry point used by the task service
    - reminder_service: recurring task reminders
"""
