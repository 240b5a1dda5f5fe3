"""Damage, estimate and decision data models."""
