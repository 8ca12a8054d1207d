"""Utility helpers for the web backend."""
