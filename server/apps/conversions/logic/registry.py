"""Registry of available conversions.

The registry is fixed per deployment: it is read from the
``WEBFORMS_CONVERSIONS`` setting.
"""

from dataclasses import dataclass
from typing import final

from django.conf import settings


@final
@dataclass(frozen=True)
class Conversion:
    """One conversion the engine offers."""

    id: int
    xml_schema: str
    description: str
    result_type: str

    def accepts(self, xml_schema: str) -> bool:
        """Whether documents of this XML Schema can be converted."""
        return bool(xml_schema) and xml_schema == self.xml_schema


def all_conversions() -> tuple[Conversion, ...]:
    """All configured conversions, in settings order."""
    return tuple(
        Conversion(**entry)
        for entry in getattr(settings, 'WEBFORMS_CONVERSIONS', ())
    )


def get_conversion(conversion_id: int) -> Conversion | None:
    """Get a conversion by id.

    Args:
        conversion_id: Conversion id.

    Returns:
        Conversion, or None if no conversion has this id.
    """
    for conversion in all_conversions():
        if conversion.id == conversion_id:
            return conversion
    return None


def conversions_for(xml_schema: str) -> list[Conversion]:
    """Conversions available for documents of an XML Schema.

    Args:
        xml_schema: XML Schema URL of the document.

    Returns:
        Matching conversions, possibly empty.
    """
    return [
        conversion
        for conversion in all_conversions()
        if conversion.accepts(xml_schema)
    ]
