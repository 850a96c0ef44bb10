"""
Exception hierarchy for site cloning jobs.
"""


class ClonerError(Exception):
    """Base class for all errors raised by a clone job."""
    pass


class InvalidInputError(ClonerError):
    """Target URL is missing or malformed; raised before any crawl work."""
    pass


class FetchError(ClonerError):
    """Network failure, timeout or non-success status for one resource."""

    def __init__(self, url: str, message: str, status_code: int = 0):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.message = message
        self.status_code = status_code


class ParseError(ClonerError):
    """Markup could not be parsed or rewritten."""
    pass


class FilesystemError(ClonerError):
    """Creating a directory or writing a mirrored file failed."""
    pass


class PackagingError(ClonerError):
    """Writing the archive failed."""
    pass
