"""
abi_bindgen - native ABI binding generation framework

Turns language-neutral native signatures into three coordinated Python
fragments per method: the raw ctypes prototype, an ergonomic call-site
wrapper, and an upcall bridge that lets native callers reach a Python
implementation through the native status-code convention.
"""

from .ir import (
    IR, TypeCategory, TypeRef, TypeSignature, ParamFlags, MethodParam, MethodSignature,
    InterfaceInfo, CallbackInfo, ConstantInfo,
)
from .types import TypeTable
from .signature import SignatureKind, classify
from .codegen import CodeGen
from .abi import AbiDeclaration, AbiGenerator
from .params import ParamGenerator
from .func import FuncGenerator
from .upcall import UpcallGenerator
from .const import ConstGenerator
from .errors import GenerationError, UnimplementedConvention, SignatureShapeError
from .generator import Generator, ModuleConfig, MethodFragments, generate_method

__all__ = [
    'IR', 'TypeCategory', 'TypeRef', 'TypeSignature', 'ParamFlags', 'MethodParam', 'MethodSignature',
    'InterfaceInfo', 'CallbackInfo', 'ConstantInfo',
    'TypeTable',
    'SignatureKind', 'classify',
    'CodeGen',
    'AbiDeclaration', 'AbiGenerator',
    'ParamGenerator',
    'FuncGenerator',
    'UpcallGenerator',
    'ConstGenerator',
    'GenerationError', 'UnimplementedConvention', 'SignatureShapeError',
    'Generator', 'ModuleConfig', 'MethodFragments', 'generate_method',
]
