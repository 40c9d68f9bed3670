"""Dispatch of stored files to the conversion engine."""

import logging

from server.apps.conversions.exceptions import ConversionNotApplicableError
from server.apps.conversions.infrastructure.converters_client import (
    ConversionResult,
    ConvertersClient,
    build_converters_client,
)
from server.apps.conversions.logic.registry import Conversion, get_conversion
from server.apps.files.logic.file_repository import FileRepository
from server.apps.files.models import StoredFile

logger = logging.getLogger(__name__)


def check_applicable(file: StoredFile, conversion_id: int) -> Conversion:
    """Make sure a conversion can be used for a file.

    Only metadata is read, content is not touched.

    Args:
        file: Stored file.
        conversion_id: Requested conversion id.

    Returns:
        The matching conversion.

    Raises:
        ConversionNotApplicableError: If the id is unknown or the file's
            XML Schema is not the one the conversion accepts.
    """
    conversion = get_conversion(conversion_id)
    if conversion is None or not conversion.accepts(file.xml_schema):
        logger.warning(
            'Conversion %d rejected for file ID=%s with schema %s',
            conversion_id,
            file.pk,
            file.xml_schema,
        )
        raise ConversionNotApplicableError(conversion_id, file.xml_schema)
    return conversion


def convert(
    file: StoredFile,
    conversion_id: int,
    timeout: float | None = None,
    client: ConvertersClient | None = None,
) -> ConversionResult:
    """Convert a stored file to another format.

    Every call renders again, results are not cached.

    Args:
        file: Stored file with loaded (or loadable) content.
        conversion_id: Requested conversion id.
        timeout: Timeout in seconds, defaults to
            ``WEBFORMS_CONVERSION_TIMEOUT``.
        client: Engine client, a new one from settings if omitted.

    Returns:
        Rendered bytes, content type and suggested file name.

    Raises:
        ConversionNotApplicableError: If the conversion does not fit the
            file. Raised before content is read or the engine is called.
        ContentNotLoadedError: If the file's content is not available.
        ConversionTimeoutError: If the engine does not answer in time.
        ConversionFailedError: If the engine fails or answers garbage.
    """
    conversion = check_applicable(file, conversion_id)
    content = file.content or b''

    if client is not None:
        return client.convert(
            conversion.id,
            file.file_name,
            file.xml_schema,
            content,
            timeout=timeout,
        )

    with build_converters_client() as own_client:
        return own_client.convert(
            conversion.id,
            file.file_name,
            file.xml_schema,
            content,
            timeout=timeout,
        )


def convert_file(  # noqa: WPS211
    repository: FileRepository,
    file_id: int,
    owner: object,
    conversion_id: int,
    timeout: float | None = None,
    client: ConvertersClient | None = None,
) -> ConversionResult:
    """Load an owner's file and convert it.

    Args:
        repository: Repository of the file kind.
        file_id: Id of the file.
        owner: Owner entry the file must belong to.
        conversion_id: Requested conversion id.
        timeout: Timeout in seconds.
        client: Engine client, a new one from settings if omitted.

    Returns:
        Rendered bytes, content type and suggested file name.

    Raises:
        DoesNotExist: If the file is missing or belongs to another owner.
    """
    file = repository.file_content_by(file_id, owner)
    return convert(file, conversion_id, timeout=timeout, client=client)
