"""Repository layer: SQL only, no transactions, connection passed in."""
from taskcord.repositories.audit_log_repo import AuditLogRepository
from taskcord.repositories.categories_repo import CategoriesRepository
from taskcord.repositories.command_permissions_repo import CommandPermissionsRepository
from taskcord.repositories.config_values_repo import ConfigValuesRepository
from taskcord.repositories.notification_preferences_repo import NotificationPreferencesRepository
from taskcord.repositories.notification_templates_repo import NotificationTemplatesRepository
from taskcord.repositories.permission_roles_repo import PermissionRolesRepository
from taskcord.repositories.reminder_repo import ReminderRepository
from taskcord.repositories.role_assignments_repo import RoleAssignmentsRepository
from taskcord.repositories.server_settings_repo import ServerSettingsRepository
from taskcord.repositories.task_history_repo import TaskHistoryRepository
from taskcord.repositories.task_repo import TaskRepository

__all__ = [
    "AuditLogRepository",
    "CategoriesRepository",
    "CommandPermissionsRepository",
    "ConfigValuesRepository",
    "NotificationPreferencesRepository",
    "NotificationTemplatesRepository",
    "PermissionRolesRepository",
    "ReminderRepository",
    "RoleAssignmentsRepository",
    "ServerSettingsRepository",
    "TaskHistoryRepository",
    "TaskRepository",
]
