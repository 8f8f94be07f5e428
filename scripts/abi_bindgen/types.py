"""
Type lookup module

The capability side table consulted by every emitter, plus the builtin
kinds most native APIs share.
"""

from typing import Iterable

from .ir import MethodParam, TypeCategory, TypeRef

# Builtin kinds. `name` is what generated code shows to callers, `abi` the
# ctypes type with the same bits.
VOID = TypeRef('None', TypeCategory.VOID, 'None')
BOOL = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_int32')
CHAR = TypeRef('bytes', TypeCategory.PRIMITIVE, 'ctypes.c_char')
WCHAR = TypeRef('str', TypeCategory.PRIMITIVE, 'ctypes.c_wchar')
I8 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_int8')
U8 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_uint8')
I16 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_int16')
U16 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_uint16')
I32 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_int32')
U32 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_uint32')
I64 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_int64')
U64 = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_uint64')
ISIZE = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_ssize_t')
USIZE = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_size_t')
LONG = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_long')
F32 = TypeRef('float', TypeCategory.PRIMITIVE, 'ctypes.c_float')
F64 = TypeRef('float', TypeCategory.PRIMITIVE, 'ctypes.c_double')
HANDLE = TypeRef('int', TypeCategory.PRIMITIVE, 'ctypes.c_void_p')
PSTR = TypeRef('abi.PSTR', TypeCategory.PRIMITIVE, 'ctypes.c_char_p')
PWSTR = TypeRef('abi.PWSTR', TypeCategory.PRIMITIVE, 'ctypes.c_wchar_p')
HRESULT = TypeRef('int', TypeCategory.STATUS, 'abi.HRESULT')
GUID = TypeRef('abi.GUID', TypeCategory.GUID)

# Kinds that accept borrowed-or-owned values out of the box
DEFAULT_CONVERTIBLE = (PSTR.name, PWSTR.name)


class TypeTable:
    """Answers which kinds are convertible and how kinds are spelled"""

    def __init__(self, convertible: Iterable[str] = DEFAULT_CONVERTIBLE):
        self._convertible: set[str] = set(convertible)

    def register_convertible(self, *names: str):
        """Mark kinds as accepting borrowed-or-owned values"""
        self._convertible.update(names)

    def is_convertible(self, kind: TypeRef) -> bool:
        """Check if a kind exposes the implicit-conversion capability"""
        return kind.is_interface or kind.name in self._convertible

    def is_convertible_param(self, param: MethodParam) -> bool:
        """Check if a parameter is passed through the conversion capability

        Only by-value inputs convert; output slots and pointers are raw.
        """
        return (not param.is_output
                and param.signature.pointers == 0
                and self.is_convertible(param.signature.kind))

    def name(self, kind: TypeRef) -> str:
        """Logical name of a kind"""
        return kind.name

    def abi_name(self, kind: TypeRef) -> str:
        """Bit-compatible ABI name of a kind"""
        if kind.abi:
            return kind.abi

        category = kind.category
        if category is TypeCategory.INTERFACE:
            return 'ctypes.c_void_p'
        elif category is TypeCategory.STATUS:
            return 'abi.HRESULT'
        elif category is TypeCategory.VOID:
            return 'None'
        elif category in (TypeCategory.STRUCT, TypeCategory.GUID, TypeCategory.CALLBACK):
            # Layout-identical: the declared type is its own ABI type
            return kind.name
        raise ValueError(f'{category.value} kind {kind.name} has no ABI representation')
