"""Concrete SQL toolkit implementations."""
