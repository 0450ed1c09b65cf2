"""
Schema composition package.

Holds the base schema fragment (cache-control, table and relationship
directives plus the common scalars) and the glob-driven composer that
appends application schema files to it.
"""

from .composer import BASE_SCHEMA, compose_schema, discover_schema_files

__all__ = ["BASE_SCHEMA", "compose_schema", "discover_schema_files"]
