"""Automated opponent policies."""

from .strategy import RandomTargeting, TargetingStrategy

__all__ = ["RandomTargeting", "TargetingStrategy"]
