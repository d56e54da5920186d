"""Command-line client for Dynamic Content hubs.

Archive, unarchive, export and import content items, content types and
content type schemas, with dependency-aware ordering for content.
"""

__version__ = "0.4.0"
