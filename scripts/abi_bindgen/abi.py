"""
Raw ABI generation module

Renders ctypes prototypes that match the native calling convention
bit-for-bit: pointer depth, pointer mutability and primitive
representation.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .codegen import param_name
from .ir import MethodParam, ParamFlags, TypeSignature

if TYPE_CHECKING:
    from .ir import MethodSignature
    from .types import TypeTable

THIS_PARAM = ('this', 'ctypes.c_void_p')
UDT_RESULT_NAME = 'result__'


@dataclass(frozen=True)
class AbiDeclaration:
    """Raw parameter list and native return type of a method"""
    params: tuple[tuple[str, str], ...]
    restype: str

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.params]

    @property
    def argtypes(self) -> list[str]:
        return [fragment for _, fragment in self.params]

    def render(self) -> str:
        """Render the ctypes prototype expression"""
        return f'abi.FUNCTYPE({", ".join([self.restype] + self.argtypes)})'

    def __str__(self) -> str:
        return self.render()


class AbiGenerator:
    """Generates raw ABI fragments"""

    def __init__(self, types: 'TypeTable'):
        self.types = types

    def declaration(self, signature: 'MethodSignature') -> AbiDeclaration:
        """Generate the raw declaration of a method"""
        params = []
        if signature.interface_method:
            params.append(THIS_PARAM)

        for param in signature.params:
            params.append((param_name(param.name), self.param(param)))

        restype = 'None'
        return_sig = signature.return_sig
        if return_sig is not None:
            if return_sig.kind.is_udt and return_sig.pointers == 0:
                # Aggregates come back through a caller-supplied pointer
                result = MethodParam(UDT_RESULT_NAME, ParamFlags(input=False, output=True),
                                     return_sig.ref())
                params.append((UDT_RESULT_NAME, self.param(result)))
            else:
                restype = self.type(return_sig, const=False)

        return AbiDeclaration(tuple(params), restype)

    def param(self, param: MethodParam) -> str:
        """Generate the raw type fragment of a parameter"""
        return self.type(param.signature, const=not param.is_output)

    def arg(self, param: MethodParam) -> str:
        """Generate the argument passed to the raw prototype"""
        return f'abi.transmute({param_name(param.name)}, {self.param(param)})'

    def type(self, signature: TypeSignature, const: bool) -> str:
        """Render a type signature with pointer decorations"""
        kind = signature.kind
        pointers = signature.pointers

        if pointers > 1 and kind.is_udt:
            tokens = self.types.name(kind)
        elif kind.is_void and pointers > 0:
            # ctypes spells void* as one type, not as a decoration
            tokens = 'ctypes.c_void_p'
            pointers -= 1
        else:
            tokens = self.types.abi_name(kind)

        decoration = 'abi.const_pointer' if const else 'ctypes.POINTER'
        for _ in range(pointers):
            tokens = f'{decoration}({tokens})'
        return tokens
