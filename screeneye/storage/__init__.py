"""Event log persistence."""
