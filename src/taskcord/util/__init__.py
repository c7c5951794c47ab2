"""
Utility functions and helpers for Taskcord.

This package provides reusable utilities:

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Uses prompt_toolkit
  for non-blocking console I/O.
- **discord_utils.py**: Stateless helpers for permission checks and role lookups.
- **format_utils.py**: Date parsing and value formatting for embeds.
"""
