"""
Exception types raised by scopemate.

Every failure is an input/programming error surfaced synchronously to the
caller. All of them derive from ValueError so callers that only care about
"bad input" can catch that.
"""

from __future__ import annotations


class ScopemateError(Exception):
    """Base class for all scopemate errors."""


class EmptyRequirementError(ScopemateError, ValueError):
    """A Requirement with no entries was encountered while flattening."""


class RequirementDepthError(ScopemateError, ValueError):
    """The requirement tree is nested deeper than the configured limit (or is cyclic)."""


class ProjectDefinitionError(ScopemateError, ValueError):
    """A project definition (dict / JSON / CSV) could not be turned into a tree."""
