"""Shared provider errors."""

from minc_extension.shared.errors import MincError


class ProviderAlreadyRegisteredError(MincError):
    """Raised when a provider id is created twice."""
