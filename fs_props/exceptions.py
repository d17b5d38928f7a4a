"""
Custom exception hierarchy for fs-props.

Only RootNotAccessibleError and TraversalCancelled ever reach callers of the
aggregator; everything else is absorbed and turns into absent data.
"""


class FsPropsError(Exception):
    """Base exception for all fs-props errors."""
    pass


class RootNotAccessibleError(FsPropsError):
    """Raised when the requested root path cannot be stat'd or listed."""

    def __init__(self, path, cause: OSError):
        self.path = path
        self.errno = getattr(cause, "errno", None)
        super().__init__(f"Cannot access {path}: {cause.strerror or cause}")


class DescendantUnreadableError(FsPropsError):
    """Raised when an entry below the root cannot be stat'd or listed."""
    pass


class MetadataExtractionError(FsPropsError):
    """Raised when metadata cannot be extracted from a file."""
    pass


class MalformedMetadataError(MetadataExtractionError):
    """Raised when probe output fails secondary parsing."""
    pass


class TraversalCancelled(FsPropsError):
    """Raised when a traversal is cancelled; `partial` holds the records finished so far."""

    def __init__(self, partial=None):
        self.partial = list(partial or [])
        super().__init__(f"Traversal cancelled after {len(self.partial)} records")
