"""
Brand Profile Pipeline.

Enriches a website address into a brand profile: voice, regional context,
competitors, personas and product catalogue, using LangGraph, Claude,
Wikipedia and Wikidata.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
