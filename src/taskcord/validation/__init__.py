"""jsonschema-backed validators for tasks, configuration values and templates."""
