"""
Runtime support for generated bindings

Generated modules import this as `abi`. It holds the native status-code
convention, the conversion capability, the one bit-reinterpretation
primitive, the one ownership hand-off entry point, and a minimal object
model for interfaces implemented in Python.
"""

import ctypes
import ctypes.util
import enum
import sys
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar('T')

# Native "system" calling convention
FUNCTYPE = ctypes.WINFUNCTYPE if sys.platform == 'win32' else ctypes.CFUNCTYPE

HRESULT = ctypes.c_int32


def _hresult(code: int) -> int:
    """Signed view of an unsigned HRESULT literal"""
    return code - (1 << 32) if code & 0x80000000 else code


S_OK = 0
S_FALSE = 1
E_NOTIMPL = _hresult(0x80004001)
E_POINTER = _hresult(0x80004003)
E_FAIL = _hresult(0x80004005)
E_ACCESSDENIED = _hresult(0x80070005)
E_OUTOFMEMORY = _hresult(0x8007000E)
E_INVALIDARG = _hresult(0x80070057)

# Instances of these own raw memory and can be reinterpreted bitwise
_CDATA = (ctypes._SimpleCData, ctypes._Pointer, ctypes.Structure, ctypes.Union, ctypes.Array)

# ctypes type codes of the fixed-width integer types
_INTEGER_CODES = frozenset('bBhHiIlLqQ')


class Error(Exception):
    """A failed native status code"""

    def __init__(self, code: int, message: str = ''):
        if code >= 0:
            raise ValueError(f'{code:#x} is not a failure code')
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        text = f'HRESULT {self.code & 0xFFFFFFFF:#010x}'
        return f'{text}: {self.message}' if self.message else text


class LayoutError(TypeError):
    """Raised when a reinterpretation would change the size of a value"""


class GUID(ctypes.Structure):
    """Interface identifier"""
    _fields_ = [
        ('Data1', ctypes.c_uint32),
        ('Data2', ctypes.c_uint16),
        ('Data3', ctypes.c_uint16),
        ('Data4', ctypes.c_ubyte * 8),
    ]


def check(hr: int) -> int:
    """Raise Error for a failure status, pass success codes through"""
    if hr < 0:
        raise Error(hr)
    return hr


def error_code(err: BaseException) -> int:
    """Map any exception to a failure status; never returns success"""
    if isinstance(err, Error):
        return err.code
    if isinstance(err, NotImplementedError):
        return E_NOTIMPL
    if isinstance(err, MemoryError):
        return E_OUTOFMEMORY
    if isinstance(err, (TypeError, ValueError)):
        return E_INVALIDARG
    return E_FAIL


def const_pointer(target: type) -> type:
    """Read-only pointer to `target`

    ctypes has no const qualifier, so this is the same type as
    ctypes.POINTER(target); the distinction lives in the declaration.
    """
    return ctypes.POINTER(target)


def transmute(value: Any, target: type) -> Any:
    """Reinterpret `value` as `target` without changing its bits

    This is the only place generated code crosses between logical and ABI
    representations. It relies on both being layout-identical and refuses
    to copy between types of different size, or to narrow a Python integer
    that does not fit an integer target.
    """
    if isinstance(value, target):
        return value
    if isinstance(value, _CDATA):
        if ctypes.sizeof(value) != ctypes.sizeof(target):
            raise LayoutError(f'cannot reinterpret {type(value).__name__} '
                              f'({ctypes.sizeof(value)} bytes) as {target.__name__} '
                              f'({ctypes.sizeof(target)} bytes)')
        return target.from_buffer_copy(value)
    if isinstance(value, int) and _is_integer_type(target):
        if target(value).value != value:
            raise LayoutError(f'{value:#x} does not fit in {target.__name__} '
                              f'({ctypes.sizeof(target)} bytes)')
        return value
    convert = getattr(target, 'from_abi', None)
    if convert is not None:
        return convert(value)
    # Plain Python values are converted by ctypes itself
    return value


def _is_integer_type(target: Any) -> bool:
    return (isinstance(target, type)
            and issubclass(target, ctypes._SimpleCData)
            and target._type_ in _INTEGER_CODES)


def from_abi(value: Any, kind: Any) -> Any:
    """Turn a raw out value into what the caller receives

    Strings written by a callee are owned by the receiver; kinds with a
    `take` method read and release them.
    """
    take = getattr(kind, 'take', None)
    if take is not None and isinstance(value, (ctypes.c_char_p, ctypes.c_wchar_p)):
        return take(ctypes.cast(value, ctypes.c_void_p).value)
    raw = value.value if isinstance(value, ctypes._SimpleCData) else value
    convert = getattr(kind, 'from_abi', None)
    if convert is not None:
        return convert(raw)
    if isinstance(kind, type) and issubclass(kind, enum.Enum):
        return kind(raw)
    return raw


def write_out(out: Any, value: Any):
    """Store `value` through an out pointer, moving ownership to the caller

    Strings are copied into memory from the native task allocator, which
    the receiver releases. Values that own a resource implement `as_raw()`
    to expose the raw value and `into_raw()` to detach it so their own
    finalizer no longer releases it; the raw value is checked against the
    slot before anything is detached. Everything else is copied
    bit-for-bit. Nothing is written unless the whole hand-off succeeds.
    """
    target = out._type_
    string_kind = _STRING_SLOTS.get(target)
    if string_kind is not None:
        if isinstance(value, target):
            value = value.value
        raw = string_kind.into_raw(value)
        ctypes.cast(out, ctypes.POINTER(ctypes.c_void_p))[0] = raw
        return

    staged = (target * 1)()
    into_raw = getattr(value, 'into_raw', None)
    if into_raw is None:
        staged[0] = transmute(value, target)
    else:
        as_raw = getattr(value, 'as_raw', None)
        if as_raw is None:
            raise TypeError(f'{type(value).__name__} implements into_raw() without as_raw()')
        staged[0] = transmute(as_raw(), target)
        into_raw()
    ctypes.memmove(out, staged, ctypes.sizeof(target))


class Param(Generic[T]):
    """A value ready to be passed as a raw argument

    `abi()` returns an object that keeps its own storage alive for the
    duration of the call.
    """

    __slots__ = ('_abi',)

    def __init__(self, abi: Any):
        self._abi = abi

    def abi(self) -> Any:
        return self._abi


IntoParam = Union[T, Param[T], None]


def into_param(value: Any, kind: Any) -> Param:
    """Convert a borrowed or owned value into a Param for `kind`"""
    if isinstance(value, Param):
        return value
    return kind.into_param(value)


def _task_allocator():
    """Allocator whose blocks the receiver of an out string releases"""
    if sys.platform == 'win32':
        lib = ctypes.WinDLL('ole32')
        alloc, free = lib.CoTaskMemAlloc, lib.CoTaskMemFree
    else:
        lib = ctypes.CDLL(None)
        alloc, free = lib.malloc, lib.free
    alloc.restype = ctypes.c_void_p
    alloc.argtypes = [ctypes.c_size_t]
    free.restype = None
    free.argtypes = [ctypes.c_void_p]
    return alloc, free


_task_alloc, _task_free = _task_allocator()


def task_alloc(data: Any) -> int:
    """Copy a ctypes buffer into a new native block"""
    size = ctypes.sizeof(data)
    address = _task_alloc(size)
    if not address:
        raise MemoryError(f'cannot allocate {size} bytes')
    ctypes.memmove(address, data, size)
    return address


def task_free(address: Optional[int]):
    """Release a block handed over through an out slot"""
    if address:
        _task_free(address)


class PSTR:
    """Narrow string argument (const char *)"""

    @classmethod
    def _encode(cls, value: Union[str, bytes, None]) -> Optional[bytes]:
        if isinstance(value, str):
            value = value.encode()
        if value is not None and not isinstance(value, bytes):
            raise TypeError(f'PSTR expects str or bytes, got {type(value).__name__}')
        return value

    @classmethod
    def into_param(cls, value: Union[str, bytes, None]) -> Param:
        return Param(ctypes.c_char_p(cls._encode(value)))

    @classmethod
    def into_raw(cls, value: Union[str, bytes, None]) -> Optional[int]:
        """Native copy of `value` owned by whoever receives it"""
        value = cls._encode(value)
        if value is None:
            return None
        return task_alloc(ctypes.create_string_buffer(value))

    @classmethod
    def take(cls, address: Optional[int]) -> Optional[str]:
        """Read a received string and release it"""
        if not address:
            return None
        try:
            return ctypes.string_at(address).decode(errors='replace')
        finally:
            task_free(address)

    @classmethod
    def from_abi(cls, value: Optional[bytes]) -> Optional[str]:
        return None if value is None else value.decode(errors='replace')


class PWSTR:
    """Wide string argument (const wchar_t *)"""

    @classmethod
    def _check(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not isinstance(value, str):
            raise TypeError(f'PWSTR expects str, got {type(value).__name__}')
        return value

    @classmethod
    def into_param(cls, value: Optional[str]) -> Param:
        return Param(ctypes.c_wchar_p(cls._check(value)))

    @classmethod
    def into_raw(cls, value: Optional[str]) -> Optional[int]:
        """Native copy of `value` owned by whoever receives it"""
        value = cls._check(value)
        if value is None:
            return None
        return task_alloc(ctypes.create_unicode_buffer(value))

    @classmethod
    def take(cls, address: Optional[int]) -> Optional[str]:
        """Read a received string and release it"""
        if not address:
            return None
        try:
            return ctypes.wstring_at(address)
        finally:
            task_free(address)

    @classmethod
    def from_abi(cls, value: Optional[str]) -> Optional[str]:
        return value


# Out slots whose pointee must outlive the call that fills them
_STRING_SLOTS = {ctypes.c_char_p: PSTR, ctypes.c_wchar_p: PWSTR}


def load_library(name: str):
    """Load a native library by short name or path"""
    path = ctypes.util.find_library(name) or name
    if sys.platform == 'win32':
        return ctypes.WinDLL(path)
    return ctypes.CDLL(path)


# ==============================================================================
# Interfaces
# ==============================================================================

class _ObjectHeader(ctypes.Structure):
    """Native layout of an object: a pointer to its vtable"""
    _fields_ = [('vtable', ctypes.c_void_p)]


# Objects implemented in Python, keyed by the raw pointer native code sees
_live_objects: dict[int, tuple[Any, _ObjectHeader, ctypes.Structure]] = {}


def implementation(this: Optional[int]) -> Any:
    """Python implementation behind a raw object pointer"""
    try:
        return _live_objects[this][0]
    except KeyError:
        raise Error(E_POINTER, f'no implementation at {this!r}') from None


def release(obj: Union['Interface', int]):
    """Drop a Python-implemented object from the registry"""
    raw = obj._raw if isinstance(obj, Interface) else obj
    _live_objects.pop(raw, None)


class Interface:
    """Proxy for a raw interface pointer"""

    _vtable_type_: Optional[type] = None
    _upcalls_: dict[str, Any] = {}

    def __init__(self, raw: Optional[int]):
        self._raw = raw

    def __repr__(self) -> str:
        raw = f'{self._raw:#x}' if self._raw else 'null'
        return f'<{type(self).__name__} {raw}>'

    def _abi(self) -> int:
        if not self._raw:
            raise Error(E_POINTER, f'null {type(self).__name__} pointer')
        return self._raw

    def _vtable(self) -> ctypes.Structure:
        vtable_ptr = ctypes.POINTER(ctypes.POINTER(self._vtable_type_))
        return ctypes.cast(self._abi(), vtable_ptr)[0][0]

    def as_raw(self) -> int:
        """Borrow this proxy's pointer"""
        return self._abi()

    def into_raw(self) -> int:
        """Give up this proxy's pointer"""
        raw = self._abi()
        self._raw = None
        return raw

    @classmethod
    def from_abi(cls, raw: Any) -> Optional['Interface']:
        if isinstance(raw, ctypes.c_void_p):
            raw = raw.value
        return cls(raw) if raw else None

    @classmethod
    def into_param(cls, value: Optional['Interface']) -> Param:
        if value is None:
            return Param(None)
        if isinstance(value, Interface):
            return Param(value._abi())
        raise TypeError(f'{cls.__name__} expects an interface, got {type(value).__name__}')

    @classmethod
    def implement(cls, impl: Any) -> 'Interface':
        """Expose a Python object to native callers through this interface

        Slots without an upcall (methods that failed generation) stay null.
        """
        vtable = cls._vtable_type_()
        for name, prototype in cls._vtable_type_._fields_:
            upcall = cls._upcalls_.get(name)
            if upcall is not None:
                setattr(vtable, name, prototype(upcall))

        header = _ObjectHeader(ctypes.addressof(vtable))
        raw = ctypes.addressof(header)
        _live_objects[raw] = (impl, header, vtable)
        return cls(raw)
