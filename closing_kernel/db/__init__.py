"""Database infrastructure for the closing kernel."""
