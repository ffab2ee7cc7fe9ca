"""Utility helpers for code-manager."""
