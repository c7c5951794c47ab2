"""Slash command and listener cogs."""
