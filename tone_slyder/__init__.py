"""
Tone Slyder.

Turns text plus tone dial settings and guardrail terms into a cached,
metered rewrite from a text-generation model.
"""

__version__ = "0.1.0"
