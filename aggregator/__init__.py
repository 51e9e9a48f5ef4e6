"""Normalization and request orchestration."""
