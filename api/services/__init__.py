"""Domain services shared by the request handlers."""

from . import expansion, identifiers, lookup, relationships

__all__ = ["expansion", "identifiers", "lookup", "relationships"]
