"""Error types raised by the AutoSocket core.

Each type also derives from the closest builtin so callers that only know
about ``FileNotFoundError`` / ``ValueError`` keep working.
"""


class AutoSocketError(Exception):
    """Base class for all AutoSocket errors."""


class MetadataNotFoundError(AutoSocketError, FileNotFoundError):
    """An expected sidecar file (.xob.meta, .et.meta) does not exist."""


class MalformedMetadataError(AutoSocketError, ValueError):
    """A sidecar exists but its Name field is missing or its GUID is invalid."""


class TemplateError(AutoSocketError, ValueError):
    """A preset or template body cannot be processed."""


class PreconditionError(AutoSocketError, ValueError):
    """Required input is missing; raised before any file is written."""


class ScanRootError(AutoSocketError, NotADirectoryError):
    """The requested scan root does not exist or is not a directory."""
