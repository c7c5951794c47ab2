"""
Taskcord - Task and Chore Tracking for Discord Servers

Taskcord lets a server hand out tasks, follow them through their lifecycle and
remind people about them, with per-server configuration and permissions.

Core Components:

- **Tasks**: Creation, assignment, deadlines and a validated status lifecycle
  (pending, in progress, completed, overdue, cancelled) with history
- **Configuration**: Per-server settings and free-form config values, both
  fronted by a TTL cache and recorded in an append-only audit log
- **Permissions**: Command allow/deny lists per role plus inheritable
  permission roles
- **Notifications**: Templated, rate-limited delivery of reminders, overdue
  alerts and assignment notices

Usage:
    from taskcord.main import main
    main()
"""
