"""
Shared fixtures for the binding generator tests
"""

import ctypes

import pytest

from abi_bindgen import CodeGen, TypeTable, UpcallGenerator
from abi_bindgen import runtime as abi


def load_source(source: str, **names) -> dict:
    """Execute generated source and return its namespace"""
    namespace = {'ctypes': ctypes, 'abi': abi}
    namespace.update(names)
    exec(compile(source, '<generated>', 'exec'), namespace)
    return namespace


@pytest.fixture
def types():
    return TypeTable()


@pytest.fixture
def load():
    return load_source


@pytest.fixture
def bridge(types):
    """Build a standalone upcall bridge around a Python callable"""
    def build(signature, impl, **names):
        gen = CodeGen()
        UpcallGenerator(types).generate_bridge('bridge', signature, 'impl', gen)
        return load_source(gen.output(), impl=impl, **names)['bridge']
    return build
