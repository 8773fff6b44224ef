"""
Core modules for Tone Slyder.

This package contains tone normalization, conflict resolution, prompt
assembly, guardrail verification, caching, pricing and usage metering.
"""
