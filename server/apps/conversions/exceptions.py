"""Exceptions for conversions app."""


class ConversionNotApplicableError(Exception):
    """Raised when a conversion cannot be used for a file.

    Either the conversion id is unknown or the file's XML Schema is not
    the one the converter accepts. Raised before any converter call.
    """

    def __init__(self, conversion_id: int, xml_schema: str) -> None:
        """Initialize ConversionNotApplicableError.

        Args:
            conversion_id: Requested conversion id.
            xml_schema: XML Schema of the file.
        """
        self.conversion_id = conversion_id
        self.xml_schema = xml_schema
        super().__init__(
            f'Conversion {conversion_id} is not available '
            f'for XML Schema {xml_schema!r}',
        )


class ConversionFailedError(Exception):
    """Raised when the converter service fails to convert a file.

    The underlying cause (HTTP status, transport error) is chained.
    The core never retries; the user may try again.
    """

    def __init__(self, conversion_id: int, reason: str) -> None:
        """Initialize ConversionFailedError.

        Args:
            conversion_id: Requested conversion id.
            reason: What went wrong.
        """
        self.conversion_id = conversion_id
        self.reason = reason
        super().__init__(f'Conversion {conversion_id} failed: {reason}')


class ConversionTimeoutError(ConversionFailedError):
    """Raised when the converter service does not answer in time."""

    def __init__(self, conversion_id: int, timeout: float) -> None:
        """Initialize ConversionTimeoutError.

        Args:
            conversion_id: Requested conversion id.
            timeout: Timeout in seconds that was exceeded.
        """
        self.timeout = timeout
        super().__init__(
            conversion_id,
            f'no response within {timeout} seconds',
        )
