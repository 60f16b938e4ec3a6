"""Adapters that connect the core to SQLite, JSON config, HTTP and notification sinks."""
