"""Admission control and capabilities."""
