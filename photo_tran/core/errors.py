"""
Exception types raised by the transduction pipeline.

Every failure of the entry point surfaces as one of these; no partially
computed signal is ever returned.
"""


class TransductionError(Exception):
    """Base class for transduction pipeline failures."""
    pass


class ConfigurationError(TransductionError, ValueError):
    """Raised for incompatible or ambiguous sensor / optical image parameters."""
    pass


class MissingDataError(TransductionError):
    """Raised when the optical image carries no photon-domain irradiance."""
    pass


class ComputationFailure(TransductionError, RuntimeError):
    """Raised when an intermediate field could not be produced."""
    pass
