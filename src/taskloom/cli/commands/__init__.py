"""CLI commands: run, capabilities and the config group."""
