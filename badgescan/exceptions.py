"""
Local request errors.

These are the only failures detected without calling an upstream provider.
Everything that goes wrong upstream is classified by badgescan.normalizer
instead of being raised.
"""


class InvalidRequest(Exception):
    """
    The inbound request cannot be analyzed as sent.

    Attributes:
        message: Text returned to the caller in the "error" field
        status_code: HTTP status for the response (400 or 405)
        suggestion: Optional remediation hint for the caller
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.suggestion = suggestion


class InvalidImageFormat(InvalidRequest):
    """Image string is neither a base64 data URI nor raw base64."""

    def __init__(self, message: str = "Image data is not a valid base64 image") -> None:
        super().__init__(
            message,
            status_code=400,
            suggestion=(
                "Send the image as a data URI (data:image/png;base64,...) "
                "or as a plain base64 string."
            ),
        )


class ProviderNotConfigured(Exception):
    """No API key is configured for the provider a request resolved to."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} API key is not configured")
        self.provider = provider
