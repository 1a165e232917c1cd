# File: helpers/__init__.py
"""Home Assistant-bound helper functions for WonderNest.

This module contains functions that REQUIRE Home Assistant dependencies.

NOTE: Functions that need `hass` object belong here, NOT in utils/.

Submodules:
    - auth_helpers: Guardian authorization checks
"""
