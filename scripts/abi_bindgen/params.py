"""
Public parameter generation module

Caller-facing parameter and argument fragments. Convertible kinds go
through the `abi.IntoParam` capability, everything else keeps its raw ABI
shape.
"""

from dataclasses import replace
from typing import TYPE_CHECKING

from .abi import AbiGenerator
from .codegen import param_name
from .errors import SignatureShapeError
from .signature import SignatureKind, classify

if TYPE_CHECKING:
    from .ir import MethodParam, MethodSignature
    from .types import TypeTable


class ParamGenerator:
    """Generates convertible parameter fragments"""

    def __init__(self, types: 'TypeTable'):
        self.types = types
        self.abi = AbiGenerator(types)

    def params(self, params: 'tuple[MethodParam, ...]') -> list[str]:
        """Generate the public parameter list"""
        return [f'{param_name(param.name)}: {self.param(param)}' for param in params]

    def param(self, param: 'MethodParam') -> str:
        """Generate the declared type of one public parameter"""
        if self.types.is_convertible_param(param):
            return f'abi.IntoParam[{self.types.name(param.signature.kind)}]'
        return self.abi.param(param)

    def arg(self, param: 'MethodParam') -> str:
        """Generate the argument that forwards a public parameter"""
        if self.types.is_convertible_param(param):
            name = param_name(param.name)
            into = self.types.name(param.signature.kind)
            return f'abi.into_param({name}, {into}).abi()'
        return self.abi.arg(param)

    def logical_type(self, param: 'MethodParam') -> str:
        """Type a raw argument is reinterpreted as on the way up"""
        if self.types.is_convertible_param(param):
            return self.types.name(param.signature.kind)
        return self.abi.param(param)

    def result_type(self, signature: 'MethodSignature') -> str:
        """Derive the success value type of a ResultValue signature"""
        if classify(signature) is not SignatureKind.RESULT_VALUE:
            raise SignatureShapeError(signature.name, 'result type requested for a non-ResultValue signature')
        if not signature.params:
            raise SignatureShapeError(signature.name, 'ResultValue signature without parameters')

        return_param = signature.params[-1]
        if return_param.signature.pointers > 1:
            return self.param(replace(return_param, signature=return_param.signature.deref()))
        return self.types.name(return_param.signature.kind)
