"""Exceptions raised by procnet."""


class ProcnetError(Exception):
    """Base class for all procnet errors."""


class ConfigurationError(ProcnetError):
    """Invalid layer parameters or layer dimensions."""


class ProcedureError(ProcnetError):
    """Procedure could not be built or was used out of order."""


class SequenceError(ProcnetError):
    """Sequence indices or depth are inconsistent."""
