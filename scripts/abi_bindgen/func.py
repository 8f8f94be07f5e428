"""
Function binding generation module

Generates the caller-facing wrapper of a method: its `def` line and the
body that forwards into the raw prototype.
"""

from dataclasses import replace
from typing import TYPE_CHECKING

from .codegen import CodeGen, call
from .errors import SignatureShapeError, UnimplementedConvention
from .params import ParamGenerator
from .signature import SignatureKind, classify

if TYPE_CHECKING:
    from .ir import MethodParam, MethodSignature
    from .types import TypeTable

THIS_ARG = 'self._abi()'


class FuncGenerator:
    """Generates public wrappers"""

    def __init__(self, types: 'TypeTable'):
        self.types = types
        self.params = ParamGenerator(types)
        self.abi = self.params.abi

    def generate(self, signature: 'MethodSignature', target: str, gen: CodeGen):
        """Generate the complete wrapper function"""
        body = self.body(signature, target)
        with gen.block(self.declaration(signature)):
            gen.fragment(body)

    def declaration(self, signature: 'MethodSignature') -> str:
        """Generate the public `def` line"""
        kind = classify(signature)
        public = self._public_params(signature, kind)

        params = self.params.params(public)
        if signature.interface_method:
            params.insert(0, 'self')

        return f'def {signature.name}({", ".join(params)}) -> {self._return_type(signature, kind)}:'

    def body(self, signature: 'MethodSignature', target: str) -> str:
        """Generate the call-site body forwarding into `target`"""
        kind = classify(signature)
        gen = CodeGen()

        if kind is SignatureKind.RESULT_VALUE:
            retval = signature.params[-1]
            args = self.call_args(signature)
            args.append('ctypes.byref(result__)')
            gen.line(f'result__ = {self._retval_storage(signature, retval)}()')
            gen.line(f'abi.check({call(target, args)})')
            gen.line(f'return abi.from_abi(result__, {self.params.result_type(signature)})')

        elif kind is SignatureKind.RESULT_VOID:
            gen.line(f'abi.check({call(target, self.call_args(signature))})')

        elif kind is SignatureKind.PRESERVE_SIG:
            gen.line(f'return {call(target, self.call_args(signature))}')

        else:
            raise UnimplementedConvention(kind, signature.name)

        return gen.output()

    def call_args(self, signature: 'MethodSignature') -> list[str]:
        """Arguments passed to the raw prototype, in declaration order

        The ResultValue out slot is left to the caller of this method.
        """
        kind = classify(signature)
        args = [THIS_ARG] if signature.interface_method else []
        args.extend(self.params.arg(param) for param in self._public_params(signature, kind))
        return args

    def _public_params(self, signature: 'MethodSignature',
                       kind: SignatureKind) -> 'tuple[MethodParam, ...]':
        if kind is SignatureKind.RESULT_VALUE:
            return signature.params[:-1]
        if kind in (SignatureKind.QUERY_INTERFACE, SignatureKind.RETURN_STRUCT):
            raise UnimplementedConvention(kind, signature.name)
        return signature.params

    def _return_type(self, signature: 'MethodSignature', kind: SignatureKind) -> str:
        if kind is SignatureKind.RESULT_VALUE:
            return self.params.result_type(signature)
        return_sig = signature.return_sig
        if kind is SignatureKind.RESULT_VOID or return_sig is None:
            return 'None'
        if return_sig.pointers > 0:
            return self.abi.type(return_sig, const=False)
        return self.types.name(return_sig.kind)

    def _retval_storage(self, signature: 'MethodSignature', retval: 'MethodParam') -> str:
        """ABI type the out slot points at"""
        pointee = retval.signature.deref()
        if pointee.kind.is_void and pointee.pointers == 0:
            raise SignatureShapeError(signature.name, f'out parameter {retval.name} points at void')
        return self.abi.param(replace(retval, signature=pointee))
