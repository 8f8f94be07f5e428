"""
Generation errors

Faults raised while emitting fragments for a single method. Every fault is
terminal for that method; the generator reports it and moves on.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .signature import SignatureKind


class GenerationError(Exception):
    """Base class for per-method generation faults"""


class UnimplementedConvention(GenerationError):
    """Raised for signature kinds that have no bridge or wrapper yet"""

    def __init__(self, kind: 'SignatureKind', method: str):
        super().__init__(kind, method)
        self.kind = kind
        self.method = method

    def __str__(self) -> str:
        return f'{self.method}: unimplemented convention {self.kind.value}'


class SignatureShapeError(GenerationError):
    """Raised when a signature breaks the positional contract of its kind"""

    def __init__(self, method: str, reason: str):
        super().__init__(method, reason)
        self.method = method
        self.reason = reason

    def __str__(self) -> str:
        return f'{self.method}: {self.reason}'
