"""Exception taxonomy for directory build, query and index operations.

Every error raised by a store or engine derives from ``DirectoryError``.
Callers that only care about "something went wrong with the directory"
can catch the base class; the subclasses carry the structural meaning.
"""

from __future__ import annotations


class DirectoryError(Exception):
    """Base class for all directory graph errors."""


class SchemaError(DirectoryError):
    """Malformed or duplicate facet/attribute definition, or bad schema state."""


class ConflictError(DirectoryError):
    """Duplicate link name under a parent, or a unique index collision."""


class CardinalityError(DirectoryError):
    """A single-parent (``NODE``) object was attached to a second parent."""


class NotTraversableError(DirectoryError):
    """Children were listed on an object that cannot have any."""


class NotFoundError(DirectoryError):
    """A path, object id, index, schema or directory does not exist."""


class FacetAttributeError(DirectoryError):
    """An attribute is missing, mistyped or not declared on the applied facet."""


class TraversalIncompleteError(DirectoryError):
    """A traversal stopped before visiting the whole subtree.

    ``partial`` holds whatever was collected before the stop so callers
    can tell a partial result apart from a complete empty one.
    """

    def __init__(self, message: str, *, partial: set | None = None) -> None:
        super().__init__(message)
        self.partial = set(partial or ())
