"""
SubVault - Source Package

A privacy-focused, offline subscription tracker: record what you pay,
how often you pay it, and get reminded before the next charge.

DESIGN PRINCIPLES:
1. Everything stays on the device (no network access, telemetry pinned off)
2. Data at rest is always encrypted
3. Fail closed on bad keys or tampered files
4. Every fallible operation returns a Result instead of crashing the caller
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SubVault Team"
