"""Web forms storage and conversion settings."""

from server.settings.components import config

# Upper bound for a single stored XML document (10 MB)
WEBFORMS_MAX_CONTENT_BYTES = config(
    'WEBFORMS_MAX_CONTENT_BYTES',
    cast=int,
    default=10 * 1024 * 1024,
)

# External conversion engine
WEBFORMS_CONVERTERS_URL = config(
    'WEBFORMS_CONVERTERS_URL',
    default='http://converters:8080',
)
WEBFORMS_CONVERSION_TIMEOUT = config(
    'WEBFORMS_CONVERSION_TIMEOUT',
    cast=float,
    default=30.0,
)

# Fixed registry of available conversions.
# Each entry: id, accepted XML schema, description, result type.
WEBFORMS_CONVERSIONS = (
    {
        'id': 1,
        'xml_schema': 'http://dd.eionet.europa.eu/schemas/habides/habides.xsd',
        'description': 'HTML overview',
        'result_type': 'HTML',
    },
    {
        'id': 2,
        'xml_schema': 'http://dd.eionet.europa.eu/schemas/habides/habides.xsd',
        'description': 'PDF report',
        'result_type': 'PDF',
    },
)
