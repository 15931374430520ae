"""Error types raised by the memlink core."""


class MemLinkError(Exception):
    """Base class for memlink errors."""


class ValidationError(MemLinkError, ValueError):
    """A structural invariant was violated (missing endpoint, self-loop, bad label)."""


class NotFoundError(MemLinkError, LookupError):
    """A node requested by the caller does not exist in the graph."""


class CorruptStateError(MemLinkError):
    """A persisted snapshot or cache could not be parsed.

    Loaders catch this and fall back to an empty structure.
    """
