"""CLI module for disco."""
