"""
Signature classification module

Decides which ABI convention a method follows from the shape of its
signature alone.
"""

from enum import Enum

from .ir import MethodSignature


class SignatureKind(Enum):
    """The five calling conventions a method can follow"""
    QUERY_INTERFACE = 'QueryInterface'
    RESULT_VALUE = 'ResultValue'
    RESULT_VOID = 'ResultVoid'
    RETURN_STRUCT = 'ReturnStruct'
    PRESERVE_SIG = 'PreserveSig'


def classify(signature: MethodSignature) -> SignatureKind:
    """Classify a signature

    Only the return kind and the trailing parameters are looked at; names
    never influence the result.
    """
    if _is_query_interface(signature):
        return SignatureKind.QUERY_INTERFACE

    return_sig = signature.return_sig
    if return_sig is None:
        return SignatureKind.PRESERVE_SIG

    if return_sig.kind.is_status and return_sig.pointers == 0:
        if _has_retval(signature):
            return SignatureKind.RESULT_VALUE
        return SignatureKind.RESULT_VOID

    if return_sig.kind.is_udt and return_sig.pointers == 0:
        return SignatureKind.RETURN_STRUCT

    return SignatureKind.PRESERVE_SIG


def _has_retval(signature: MethodSignature) -> bool:
    """Check if the last parameter carries the success value

    Optional trailing out-pointers may legally be null, so they are not
    treated as a value carrier.
    """
    if not signature.params:
        return False
    last = signature.params[-1]
    return last.is_output and not last.flags.optional and last.signature.pointers >= 1


def _is_query_interface(signature: MethodSignature) -> bool:
    """Check for the (const GUID *riid, void **ppv) identity query shape"""
    return_sig = signature.return_sig
    if return_sig is None or not return_sig.kind.is_status:
        return False
    if len(signature.params) < 2:
        return False

    iid, obj = signature.params[-2], signature.params[-1]
    return (not iid.is_output
            and iid.signature.kind.is_guid
            and iid.signature.pointers == 1
            and obj.is_output
            and obj.signature.kind.is_void
            and obj.signature.pointers == 2)
