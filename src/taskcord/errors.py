"""
Domain exceptions raised by Taskcord services.

Services raise these; command cogs catch :class:`TaskcordError` and turn the
message into an ephemeral reply. Anything else is treated as a bug and logged.
"""


class TaskcordError(Exception):
    """Base class for every error that is safe to show to a Discord user."""


# ---------------------------------------------------------------- tasks

class TaskValidationError(TaskcordError):
    pass


class TaskNotFoundError(TaskcordError):
    def __init__(self, task_id: int):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidStatusTransitionError(TaskcordError):
    def __init__(self, from_status, to_status):
        super().__init__(
            f"Invalid status transition from {from_status.value} to {to_status.value}"
        )
        self.from_status = from_status
        self.to_status = to_status


class AssignmentError(TaskcordError):
    pass


# ---------------------------------------------------------------- config

class ConfigValidationError(TaskcordError):
    pass


class ConfigPermissionError(TaskcordError):
    pass


class ConfigNotFoundError(TaskcordError):
    pass


class PermissionDeniedError(TaskcordError):
    """The member may not run a command."""

    def __init__(self, command: str, message: str | None = None):
        super().__init__(message or f"You don't have permission to use `/{command}`.")
        self.command = command


# ---------------------------------------------------------------- notifications

class TemplateError(TaskcordError):
    pass


class NotificationError(TaskcordError):
    pass


class NotificationDeliveryError(NotificationError):
    """Delivery of a single notification failed.

    ``retryable`` tells the dispatcher whether the notification goes back on
    the retry queue.
    """

    def __init__(self, notification_id: str, message: str, retryable: bool):
        super().__init__(f"Failed to deliver notification {notification_id}: {message}")
        self.notification_id = notification_id
        self.retryable = retryable


class ReminderError(TaskcordError):
    pass
