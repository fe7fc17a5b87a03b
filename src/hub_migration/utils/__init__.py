"""Utility helpers for Hub Bridge."""
