"""
Schema composition.

The composed document is the fixed base fragment followed by every schema
file matched by a glob, each preceded by a newline.
"""

import posixpath
from pathlib import Path
from typing import List, Union

from wcmatch import glob

from shared.errors import SchemaCompositionError
from shared.logging import get_logger

logger = get_logger("graphql.schema")

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB | glob.NODIR

BASE_SCHEMA = """enum CacheControlScope {
  PUBLIC
  PRIVATE
}

directive @cacheControl(
  maxAge: Int
  scope: CacheControlScope
  inheritMaxAge: Boolean
) on FIELD_DEFINITION | OBJECT | INTERFACE | UNION

directive @table(
  database: String
  table: String
  expiration: Int
  audit: Boolean
) on OBJECT

directive @export(
  name: String
) on OBJECT

directive @sealed on OBJECT
directive @primaryKey on FIELD_DEFINITION
directive @indexed on FIELD_DEFINITION
directive @updatedTime on FIELD_DEFINITION
directive @relationship(
  to: String
  from: String
) on FIELD_DEFINITION

scalar Long
scalar BigInt
scalar Date
scalar Any
"""


def discover_schema_files(base_dir: Union[str, Path], pattern: str) -> List[str]:
    """Return the files matching ``pattern`` under ``base_dir`` in sorted order.

    Patterns support globstar, brace and extglob syntax (``**/*.{graphql,gql}``).
    """
    root = Path(base_dir).as_posix()
    matches = glob.glob(pattern, flags=GLOB_FLAGS, root_dir=root)
    # posixpath keeps "/" as given instead of normalizing to the platform separator
    return sorted(posixpath.join(root, path) for path in matches)


def compose_schema(base_dir: Union[str, Path], pattern: str) -> str:
    """Concatenate the base schema with every matched schema file."""
    files = discover_schema_files(base_dir, pattern)
    fragments = [BASE_SCHEMA]
    for path in files:
        try:
            fragments.append(Path(path).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise SchemaCompositionError(path, str(e)) from e

    logger.info("Schema composed", pattern=pattern, files=len(files))
    return "\n".join(fragments)
