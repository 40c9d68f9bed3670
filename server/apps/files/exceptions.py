"""Exceptions for files app."""


class ContentNotLoadedError(Exception):
    """Raised when deferred content is read after its unit of work closed.

    This is a programming error: content must be loaded with
    ``file_content_by`` or inside the unit of work that fetched the record.
    """

    def __init__(self, file_id: int | None) -> None:
        """Initialize ContentNotLoadedError.

        Args:
            file_id: Id of the record whose content was requested.
        """
        self.file_id = file_id
        super().__init__(
            f'Content of file {file_id} is not loaded and its unit of work '
            'is closed; load it with file_content_by()',
        )
