"""
Custom exception hierarchy for the ebook index.

Provides specific exception types for different failure modes:
configuration errors, extraction failures, manifest problems, index
storage issues, and search problems.
"""


class EbookIndexError(Exception):
    """Base exception for all ebook index errors."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(EbookIndexError):
    """Raised when configuration is invalid or missing."""
    pass


class ExtractionError(EbookIndexError):
    """Raised when PDF or EPUB text extraction fails."""

    def __init__(self, message: str, filepath: str = None, details: dict = None):
        """
        Initialize extraction error.

        Args:
            message: Error description.
            filepath: Path to the problematic ebook file.
            details: Additional context.
        """
        super().__init__(message, details)
        self.filepath = filepath


class ManifestError(EbookIndexError):
    """Raised when the data file (manifest) is missing or unparseable."""

    def __init__(self, message: str, path: str = None, details: dict = None):
        super().__init__(message, details)
        self.path = path


class IndexStoreError(EbookIndexError):
    """Raised when a persisted index cannot be read or written."""

    def __init__(self, message: str, path: str = None, details: dict = None):
        super().__init__(message, details)
        self.path = path


class IndexNotFoundError(IndexStoreError):
    """Raised when neither a single-file nor a split index exists."""
    pass


class IndexCorruptedError(IndexStoreError):
    """Raised when the top-level index file or split manifest is unreadable."""
    pass


class SearchError(EbookIndexError):
    """Raised when search query execution fails."""

    def __init__(self, message: str, query: str = None, details: dict = None):
        """
        Initialize search error.

        Args:
            message: Error description.
            query: The problematic search query.
            details: Additional context.
        """
        super().__init__(message, details)
        self.query = query
