"""
Exception classes for docstruct.

All docstruct exceptions inherit from DocStructError,
making it easy to catch all library errors.

The analysis core itself never raises for malformed or unusual
documents; these exceptions surface only at the edges (opening a
document, building a configuration).

Example:
    >>> try:
    ...     analyzer = docstruct.analyze("paper.pdf", config)
    ... except docstruct.DocumentOpenError as e:
    ...     print(f"Could not open: {e}")
    ... except docstruct.DocStructError as e:
    ...     print(f"docstruct error: {e}")
"""


class DocStructError(Exception):
    """
    Base exception for all docstruct errors.

    Catch this to handle any docstruct-specific error.
    """

    pass


class DocumentOpenError(DocStructError):
    """
    Raised when the PDF engine cannot open or read the document.

    This is the only fatal condition; everything past opening
    degrades to smaller or empty results instead.
    """

    pass


class ExtractionError(DocStructError):
    """
    Raised when analysis setup fails.

    This is only raised when config.on_extraction_error == "raise".
    Otherwise, failures are logged as warnings.
    """

    pass


class ConfigurationError(DocStructError, ValueError):
    """
    Raised for invalid configuration.

    Example:
        >>> IndexingConfig(batch_size=0)
        ConfigurationError: batch_size must be >= 1, got 0
    """

    pass
