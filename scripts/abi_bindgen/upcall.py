"""
Upcall bridge generation module

Generates the glue a native caller goes through to reach a Python
implementation: raw arguments are reinterpreted on the way up, and the
outcome is translated back into the native status-code convention on the
way down.
"""

from typing import TYPE_CHECKING

from .codegen import CodeGen, call, param_name
from .errors import SignatureShapeError, UnimplementedConvention
from .params import ParamGenerator
from .signature import SignatureKind, classify

if TYPE_CHECKING:
    from .ir import MethodParam, MethodSignature
    from .types import TypeTable


class UpcallGenerator:
    """Generates upcall bridges"""

    def __init__(self, types: 'TypeTable'):
        self.types = types
        self.params = ParamGenerator(types)

    def generate_bridge(self, func_name: str, signature: 'MethodSignature',
                        inner: str, gen: CodeGen):
        """Generate a bridge function taking the raw ABI parameters"""
        body = self.body(signature, inner)
        names = self.params.abi.declaration(signature).names
        with gen.block(f'def {func_name}({", ".join(names)}):'):
            gen.fragment(body)

    def body(self, signature: 'MethodSignature', inner: str) -> str:
        """Generate the bridge body

        `inner` is the expression of the implementation callable; it is
        invoked with the reinterpreted raw arguments.
        """
        kind = classify(signature)
        gen = CodeGen()

        if kind is SignatureKind.RESULT_VALUE:
            if not signature.params:
                raise SignatureShapeError(signature.name, 'ResultValue signature without parameters')
            result = param_name(signature.params[-1].name)
            args = [self.invoke_arg(param) for param in signature.params[:-1]]

            with gen.block(f'if not {result}:'):
                gen.line('return abi.E_POINTER')
            with gen.block('try:'):
                gen.line(f'ok__ = {call(inner, args)}')
                # Hands ownership of ok__ to the caller exactly once
                gen.line(f'abi.write_out({result}, ok__)')
            with gen.block('except Exception as err:'):
                gen.line('return abi.error_code(err)')
            gen.line('return abi.S_OK')

        elif kind is SignatureKind.RESULT_VOID:
            args = [self.invoke_arg(param) for param in signature.params]
            with gen.block('try:'):
                gen.line(call(inner, args))
            with gen.block('except Exception as err:'):
                gen.line('return abi.error_code(err)')
            gen.line('return abi.S_OK')

        elif kind is SignatureKind.PRESERVE_SIG:
            args = [self.invoke_arg(param) for param in signature.params]
            gen.line(f'return {call(inner, args)}')

        else:
            raise UnimplementedConvention(kind, signature.name)

        return gen.output()

    def invoke_arg(self, param: 'MethodParam') -> str:
        """Reinterpret a raw argument for the implementation"""
        return f'abi.transmute({param_name(param.name)}, {self.params.logical_type(param)})'
