"""Progression engine feature modules."""
