"""Fixtures for conversion tests."""

import httpx
import pytest

from server.apps.conversions.infrastructure.converters_client import (
    ConvertersClient,
)

HABIDES_SCHEMA = 'http://dd.eionet.europa.eu/schemas/habides/habides.xsd'


@pytest.fixture
def engine_requests():
    """Requests received by the fake conversion engine.

    Returns:
        List filled by ``fake_engine`` handlers.
    """
    return []


@pytest.fixture
def fake_engine(engine_requests):
    """Factory of clients talking to a fake conversion engine.

    Returns:
        Function taking a request handler and returning a client.
    """
    clients = []

    def factory(handler, timeout: float = 5.0) -> ConvertersClient:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            engine_requests.append(request)
            return handler(request)

        client = ConvertersClient(
            base_url='http://converters.test',
            timeout=timeout,
            transport=httpx.MockTransport(recording_handler),
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def conversions(settings):
    """Configure two conversions for habides documents and one other."""
    settings.WEBFORMS_CONVERSIONS = (
        {
            'id': 1,
            'xml_schema': HABIDES_SCHEMA,
            'description': 'HTML overview',
            'result_type': 'HTML',
        },
        {
            'id': 2,
            'xml_schema': HABIDES_SCHEMA,
            'description': 'PDF report',
            'result_type': 'PDF',
        },
        {
            'id': 7,
            'xml_schema': 'http://example.com/other.xsd',
            'description': 'Other overview',
            'result_type': 'HTML',
        },
    )
    return settings.WEBFORMS_CONVERSIONS
