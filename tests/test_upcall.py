import ctypes
import gc

import pytest

from abi_bindgen import (
    CodeGen, MethodParam, MethodSignature, TypeCategory, TypeRef, TypeSignature, UnimplementedConvention,
    UpcallGenerator,
)
from abi_bindgen import runtime as abi
from abi_bindgen.types import GUID, HRESULT, I32, PSTR, PWSTR, U32, VOID

RECT = TypeRef('RECT', TypeCategory.STRUCT)

STATUS = TypeSignature(HRESULT)

CREATE_HANDLE = MethodSignature('CreateHandle', (
    MethodParam.input('seed', I32),
    MethodParam.output('handle', I32),
), STATUS)

UPDATE = MethodSignature('Update', (
    MethodParam.input('count', I32, 1),
    MethodParam.output('state', I32, optional=True),
), STATUS)

GET_NAME = MethodSignature('GetName', (MethodParam.output('name', PSTR),), STATUS)

GET_WIDE_NAME = MethodSignature('GetWideName', (MethodParam.output('name', PWSTR),), STATUS)


class Tracked:
    """Owns a fake native handle and counts live handles"""

    live = 0

    def __init__(self, handle: int):
        Tracked.live += 1
        self.handle = handle
        self._owned = True

    def as_raw(self) -> int:
        return self.handle

    def into_raw(self) -> int:
        self._owned = False
        return self.handle

    @staticmethod
    def close(handle: int):
        Tracked.live -= 1

    def __del__(self):
        if self._owned:
            Tracked.close(self.handle)


@pytest.fixture
def upcall(types):
    return UpcallGenerator(types)


def test_result_value_body(upcall):
    assert upcall.body(CREATE_HANDLE, 'inner').split('\n') == [
        'if not handle:',
        '    return abi.E_POINTER',
        'try:',
        '    ok__ = inner(abi.transmute(seed, ctypes.c_int32))',
        '    abi.write_out(handle, ok__)',
        'except Exception as err:',
        '    return abi.error_code(err)',
        'return abi.S_OK',
    ]


def test_result_void_body(upcall):
    assert upcall.body(UPDATE, 'inner').split('\n') == [
        'try:',
        '    inner(abi.transmute(count, abi.const_pointer(ctypes.c_int32)), '
        'abi.transmute(state, ctypes.POINTER(ctypes.c_int32)))',
        'except Exception as err:',
        '    return abi.error_code(err)',
        'return abi.S_OK',
    ]


def test_preserve_sig_body(upcall):
    signature = MethodSignature('Measure', (MethodParam.input('text', PSTR),), TypeSignature(U32))
    assert upcall.body(signature, 'inner') == 'return inner(abi.transmute(text, abi.PSTR))'


@pytest.mark.parametrize('signature', [
    MethodSignature('QueryInterface', (
        MethodParam.input('riid', GUID, 1),
        MethodParam.output('ppvObject', VOID, 2),
    ), STATUS),
    MethodSignature('GetDesc', (), TypeSignature(RECT)),
])
def test_unimplemented_conventions(upcall, signature):
    with pytest.raises(UnimplementedConvention):
        upcall.body(signature, 'inner')


def test_result_value_writes_handle(bridge):
    calls = []

    def impl(seed):
        calls.append(seed)
        return 0x1234

    out = ctypes.c_int32(0)
    assert bridge(CREATE_HANDLE, impl)(7, ctypes.pointer(out)) == abi.S_OK
    assert calls == [7]
    assert out.value == 0x1234


def test_result_value_through_native_prototype(bridge):
    prototype = abi.FUNCTYPE(abi.HRESULT, ctypes.c_int32, ctypes.POINTER(ctypes.c_int32))
    native = prototype(bridge(CREATE_HANDLE, lambda seed: seed + 1))

    out = ctypes.c_int32(0)
    assert native(41, ctypes.byref(out)) == abi.S_OK
    assert out.value == 42


def test_result_value_rejects_null_out(bridge):
    calls = []
    assert bridge(CREATE_HANDLE, calls.append)(7, None) == abi.E_POINTER
    assert calls == []


def test_ownership_moves_to_caller(bridge):
    before = Tracked.live
    out = ctypes.c_int32(0)

    hr = bridge(CREATE_HANDLE, lambda seed: Tracked(seed * 3))(5, ctypes.pointer(out))
    gc.collect()

    assert hr == abi.S_OK
    assert out.value == 15
    assert Tracked.live == before + 1

    Tracked.close(out.value)
    assert Tracked.live == before


def test_ownership_released_on_failure(bridge):
    before = Tracked.live
    out = ctypes.c_int32(-1)

    def impl(seed):
        handle = Tracked(seed)
        raise abi.Error(abi.E_ACCESSDENIED, f'handle {handle.handle} refused')

    hr = bridge(CREATE_HANDLE, impl)(5, ctypes.pointer(out))
    gc.collect()

    assert hr == abi.E_ACCESSDENIED
    assert out.value == -1
    assert Tracked.live == before


def test_result_void_failure_writes_nothing(bridge):
    def impl(count, state):
        raise abi.Error(abi.E_ACCESSDENIED)

    count = ctypes.c_int32(3)
    state = ctypes.c_int32(-7)
    hr = bridge(UPDATE, impl)(ctypes.pointer(count), ctypes.pointer(state))

    assert hr == abi.E_ACCESSDENIED
    assert count.value == 3
    assert state.value == -7


@pytest.mark.parametrize('exc, code', [
    (abi.Error(abi.E_OUTOFMEMORY), abi.E_OUTOFMEMORY),
    (NotImplementedError(), abi.E_NOTIMPL),
    (ValueError('bad'), abi.E_INVALIDARG),
    (RuntimeError('boom'), abi.E_FAIL),
])
def test_exceptions_become_failure_codes(bridge, exc, code):
    def impl(count, state):
        raise exc

    assert bridge(UPDATE, impl)(None, None) == code


def test_result_void_success(bridge):
    seen = []

    def impl(count, state):
        seen.append(count[0])
        if state:
            state[0] = 9

    count = ctypes.c_int32(3)
    state = ctypes.c_int32(0)
    assert bridge(UPDATE, impl)(ctypes.pointer(count), ctypes.pointer(state)) == abi.S_OK
    assert seen == [3]
    assert state.value == 9


def test_bridge_takes_raw_names(upcall):
    gen = CodeGen()
    upcall.generate_bridge('CreateHandle_upcall', CREATE_HANDLE, 'inner', gen)
    assert gen.output().split('\n')[0] == 'def CreateHandle_upcall(seed, handle):'


def test_narrow_string_outlives_bridge(bridge):
    native = abi.FUNCTYPE(abi.HRESULT, ctypes.POINTER(ctypes.c_char_p))(bridge(GET_NAME, lambda: b'x' * 64))

    out = ctypes.c_char_p()
    assert native(ctypes.byref(out)) == abi.S_OK
    gc.collect()
    noise = [ctypes.create_string_buffer(b'L' * 64) for _ in range(256)]

    assert out.value == b'x' * 64
    assert abi.from_abi(out, abi.PSTR) == 'x' * 64
    assert len(noise) == 256


def test_wide_string_outlives_bridge(bridge):
    native = abi.FUNCTYPE(abi.HRESULT, ctypes.POINTER(ctypes.c_wchar_p))(bridge(GET_WIDE_NAME, lambda: 'kennykerr.ca'))

    out = ctypes.c_wchar_p()
    assert native(ctypes.byref(out)) == abi.S_OK
    gc.collect()
    noise = [ctypes.create_unicode_buffer('Z' * 12) for _ in range(256)]

    assert out.value == 'kennykerr.ca'
    assert abi.from_abi(out, abi.PWSTR) == 'kennykerr.ca'
    assert len(noise) == 256


def test_null_string_result(bridge):
    out = ctypes.c_char_p()
    assert bridge(GET_NAME, lambda: None)(ctypes.pointer(out)) == abi.S_OK
    assert out.value is None
    assert abi.from_abi(out, abi.PSTR) is None


def test_string_result_of_wrong_type(bridge):
    out = ctypes.c_wchar_p()
    assert bridge(GET_WIDE_NAME, lambda: 42)(ctypes.pointer(out)) == abi.E_INVALIDARG
    assert out.value is None


def test_oversized_value_is_refused(bridge):
    out = ctypes.c_int32(-1)
    hr = bridge(CREATE_HANDLE, lambda seed: 0x1_0000_0007)(1, ctypes.pointer(out))

    assert hr == abi.E_INVALIDARG
    assert out.value == -1


def test_failed_hand_off_keeps_ownership(bridge):
    class Mismatched(Tracked):
        def as_raw(self):
            return 'not a handle'

    before = Tracked.live
    out = ctypes.c_int32(-1)

    hr = bridge(CREATE_HANDLE, lambda seed: Mismatched(seed))(1, ctypes.pointer(out))
    gc.collect()

    assert hr == abi.E_INVALIDARG
    assert out.value == -1
    assert Tracked.live == before


def test_oversized_owned_value_keeps_ownership(bridge):
    before = Tracked.live
    out = ctypes.c_int32(-1)

    hr = bridge(CREATE_HANDLE, lambda seed: Tracked(1 << 40))(1, ctypes.pointer(out))
    gc.collect()

    assert hr == abi.E_INVALIDARG
    assert out.value == -1
    assert Tracked.live == before


def test_owner_without_borrow_is_refused(bridge):
    class Opaque:
        released = False

        def into_raw(self):
            Opaque.released = True
            return 1

    out = ctypes.c_int32(-1)
    assert bridge(CREATE_HANDLE, lambda seed: Opaque())(1, ctypes.pointer(out)) == abi.E_INVALIDARG
    assert not Opaque.released
    assert out.value == -1
