"""HTTP client of the external conversion engine."""

import logging
import re
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Final, final
from urllib.parse import unquote

import httpx
from django.conf import settings

from server.apps.conversions.exceptions import (
    ConversionFailedError,
    ConversionTimeoutError,
)
from server.apps.files.infrastructure.metadata import (
    guess_extension,
    replace_extension,
)

_CONVERT_PATH: Final = '/convert'
_XML_CONTENT_TYPE: Final = 'application/xml'

# filename*=UTF-8''name.pdf or filename="name.pdf" or filename=name.pdf
_FILENAME_EXT_RE: Final = re.compile(r"filename\*\s*=\s*[\w-]+'[\w-]*'([^;]+)", re.I)
_FILENAME_RE: Final = re.compile(r'filename\s*=\s*"?([^";]+)"?', re.I)

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class ConversionResult:
    """Rendered document ready to be streamed to the caller."""

    content: bytes
    content_type: str
    file_name: str


def file_name_from_disposition(header: str | None) -> str | None:
    """Extract the suggested file name of a Content-Disposition header.

    Args:
        header: Header value (e.g., 'attachment; filename="report.pdf"').

    Returns:
        File name, or None if the header carries none.
    """
    if not header:
        return None
    match = _FILENAME_EXT_RE.search(header)
    if match:
        return unquote(match.group(1).strip())
    match = _FILENAME_RE.search(header)
    if match:
        return match.group(1).strip()
    return None


@final
class ConvertersClient:
    """Synchronous client of the conversion engine.

    Every call blocks until the engine answers or the timeout expires.
    The timeout bounds the whole call, a slowly trickling response
    included. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Root URL of the conversion engine.
            timeout: Default timeout for a conversion in seconds.
            transport: Optional transport, used by tests.
        """
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> 'ConvertersClient':
        """Use the client as a context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close connections, aborting any request still in flight."""
        self.close()

    def close(self) -> None:
        """Close underlying HTTP connections."""
        self._client.close()

    def convert(  # noqa: WPS211
        self,
        conversion_id: int,
        file_name: str,
        xml_schema: str,
        content: bytes,
        timeout: float | None = None,
    ) -> ConversionResult:
        """Send a document to the engine and return the rendition.

        Args:
            conversion_id: Conversion to run.
            file_name: Name of the source document.
            xml_schema: XML Schema of the source document.
            content: Source document bytes.
            timeout: Timeout in seconds, defaults to the client timeout.

        Returns:
            Rendered bytes with content type and suggested file name.

        Raises:
            ConversionTimeoutError: If the engine does not answer in time.
            ConversionFailedError: On transport errors, non-success status
                or a response without content type.
        """
        effective_timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + effective_timeout
        logger.info(
            'Requesting conversion %d of %s (%d bytes)',
            conversion_id,
            file_name,
            len(content),
        )

        try:
            with self._client.stream(
                'POST',
                _CONVERT_PATH,
                data={
                    'convert_id': str(conversion_id),
                    'schema': xml_schema,
                },
                files={'file': (file_name, content, _XML_CONTENT_TYPE)},
                timeout=effective_timeout,
            ) as response:
                body = self._read_body(
                    conversion_id,
                    response,
                    deadline,
                    effective_timeout,
                )
        except httpx.TimeoutException as error:
            raise self._timed_out(conversion_id, effective_timeout) from error
        except httpx.HTTPError as error:
            logger.exception('Conversion %d request failed', conversion_id)
            raise ConversionFailedError(conversion_id, str(error)) from error

        return self._to_result(conversion_id, file_name, response, body)

    def _read_body(
        self,
        conversion_id: int,
        response: httpx.Response,
        deadline: float,
        timeout: float,
    ) -> bytes:
        # httpx timeouts bound each network operation, the deadline
        # bounds the whole exchange
        chunks = []
        for chunk in response.iter_bytes():
            if time.monotonic() > deadline:
                raise self._timed_out(conversion_id, timeout)
            chunks.append(chunk)
        if time.monotonic() > deadline:
            raise self._timed_out(conversion_id, timeout)
        return b''.join(chunks)

    def _timed_out(
        self,
        conversion_id: int,
        timeout: float,
    ) -> ConversionTimeoutError:
        logger.warning(
            'Conversion %d timed out after %s seconds',
            conversion_id,
            timeout,
        )
        return ConversionTimeoutError(conversion_id, timeout)

    def _to_result(
        self,
        conversion_id: int,
        file_name: str,
        response: httpx.Response,
        body: bytes,
    ) -> ConversionResult:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            logger.warning(
                'Conversion %d rejected by engine: HTTP %d',
                conversion_id,
                response.status_code,
            )
            raise ConversionFailedError(
                conversion_id,
                f'engine answered HTTP {response.status_code}',
            ) from error

        content_type = response.headers.get('content-type')
        if not content_type:
            raise ConversionFailedError(
                conversion_id,
                'engine response has no content type',
            )

        suggested_name = file_name_from_disposition(
            response.headers.get('content-disposition'),
        ) or replace_extension(file_name, guess_extension(content_type))

        logger.info(
            'Conversion %d done: %s (%s, %d bytes)',
            conversion_id,
            suggested_name,
            content_type,
            len(body),
        )
        return ConversionResult(
            content=body,
            content_type=content_type,
            file_name=suggested_name,
        )


def build_converters_client() -> ConvertersClient:
    """Create a client configured from settings.

    Returns:
        Client for ``WEBFORMS_CONVERTERS_URL`` with the default timeout.
    """
    return ConvertersClient(
        base_url=settings.WEBFORMS_CONVERTERS_URL,
        timeout=getattr(settings, 'WEBFORMS_CONVERSION_TIMEOUT', 30.0),
    )
