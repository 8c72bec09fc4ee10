"""
Exception types raised by the scan pipeline.
Lookup failures against the external platform are not exceptions here; they
degrade to partial/empty results and are logged by the caller.
"""


class LabelCheckError(Exception):
    """Base class for labelcheck errors."""


class InvalidExtractionError(LabelCheckError, ValueError):
    """Stored or freshly extracted JSON does not match the IngredientsResult shape."""


class LegacyFormatError(InvalidExtractionError):
    """Extraction predates structured mentions (no `mentions` array)."""


class PricingError(LabelCheckError, KeyError):
    """No pricing configured for the requested model key."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "missing pricing"
