"""Error types raised across the indexing and query pipeline."""


class CearchError(Exception):
    """Base class for all cearch errors."""


class FileAccessError(CearchError):
    """A file or directory could not be read or written."""


class ParseError(CearchError):
    """Source text could not be parsed or a grammar query is invalid."""


class EmbedError(CearchError):
    """The embedding model failed or returned unusable output."""


class DimensionMismatchError(EmbedError):
    """An embedding does not have the dimension the index expects."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"embedding has dimension {actual}, index expects {expected}")
        self.expected = expected
        self.actual = actual


class StoreError(CearchError):
    """The vector store could not be opened, written or queried."""


class NotFoundError(StoreError):
    """No index exists at the requested location."""


class ConfigError(CearchError):
    """Invalid configuration or not inside a git repository."""
