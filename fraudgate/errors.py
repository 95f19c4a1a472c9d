"""
Base exceptions shared by every fraudgate module.
"""


class FraudGateError(Exception):
    """Base class for all fraudgate errors."""


class StoreError(FraudGateError):
    """An external collaborator failed."""
