"""
Constant generation module

Generates module-level constants.
"""

import math
from typing import TYPE_CHECKING

from .codegen import CodeGen

if TYPE_CHECKING:
    from .ir import ConstantInfo


class ConstGenerator:
    """Generates constant bindings"""

    def generate(self, constant: 'ConstantInfo', gen: CodeGen):
        """Generate one constant assignment"""
        gen.line(f'{constant.name} = {self.literal(constant)}')

    def literal(self, constant: 'ConstantInfo') -> str:
        """Python literal for a constant value"""
        value = constant.value
        abi = constant.type.abi

        if isinstance(value, bool):
            return str(int(value))
        elif isinstance(value, (bytes, str)):
            return repr(value)
        elif abi in ('ctypes.c_float', 'ctypes.c_double') or isinstance(value, float):
            value = float(value)
            if math.isinf(value):
                return "float('inf')" if value > 0 else "float('-inf')"
            if math.isnan(value):
                return "float('nan')"
            return repr(value)
        elif isinstance(value, int):
            return str(value)
        raise TypeError(f'constant {constant.name} has unsupported value {value!r}')
