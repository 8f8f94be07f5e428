"""
Main generator module

Runs every emitter over a module's signatures and splices the fragments
into Python source. Nothing is written to disk here.
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Union

from .abi import AbiDeclaration, AbiGenerator
from .codegen import CodeGen
from .const import ConstGenerator
from .errors import GenerationError, SignatureShapeError
from .func import FuncGenerator
from .ir import IR, CallbackInfo, InterfaceInfo, MethodSignature
from .signature import SignatureKind, classify
from .types import TypeTable
from .upcall import UpcallGenerator

HEADER_LINES = (
    '# machine generated, do not edit',
    'from __future__ import annotations',
    '',
    'import ctypes',
    '',
    'from abi_bindgen import runtime as abi',
)

# Vtable slot kept for methods that failed generation
PLACEHOLDER_SLOT = 'ctypes.c_void_p'


@dataclass(frozen=True)
class MethodFragments:
    """Everything emitted for one method"""
    name: str
    kind: SignatureKind
    abi: AbiDeclaration
    declaration: str
    body: str
    upcall: Optional[str] = None


MethodResult = Union[MethodFragments, GenerationError]


@contextmanager
def method_faults(name: str):
    """Report model faults raised while emitting one method as that method's failure"""
    try:
        yield
    except ValueError as err:
        raise SignatureShapeError(name, str(err)) from err


def generate_method(types: TypeTable, signature: MethodSignature) -> MethodFragments:
    """Generate all fragments for one method

    Module-level so it can run in a worker process.
    """
    with method_faults(signature.name):
        return _generate_method(types, signature)


def _generate_method(types: TypeTable, signature: MethodSignature) -> MethodFragments:
    func_gen = FuncGenerator(types)
    upcall = None
    if signature.interface_method:
        target = f'self._vtable().{signature.name}'
        inner = f'abi.implementation(this).{signature.name}'
        upcall = UpcallGenerator(types).body(signature, inner)
    else:
        target = f'_{signature.name}'

    return MethodFragments(
        name=signature.name,
        kind=classify(signature),
        abi=AbiGenerator(types).declaration(signature),
        declaration=func_gen.declaration(signature),
        body=func_gen.body(signature, target),
        upcall=upcall,
    )


class ModuleConfig:
    """Configuration for a module"""

    def __init__(self, name: str):
        self.name = name
        self.library: str = ''
        self.ignores: set[str] = set()
        self.imports: list[str] = []


class Generator:
    """Main binding generator"""

    def __init__(self, types: Optional[TypeTable] = None, jobs: int = 1):
        self.types = types or TypeTable()
        self.jobs = jobs
        self._modules: dict[str, ModuleConfig] = {}
        self._global_ignores: set[str] = set()

    def ignore(self, *names: str):
        """Add symbols to ignore globally"""
        self._global_ignores.update(names)

    def module(self, name: str) -> ModuleConfig:
        """Get or create module configuration"""
        if name not in self._modules:
            self._modules[name] = ModuleConfig(name)
        return self._modules[name]

    def convertible(self, *names: str):
        """Register kinds that accept borrowed-or-owned values"""
        self.types.register_convertible(*names)

    def generate_all(self, irs: Sequence[IR]) -> dict[str, str]:
        """Generate source for every module"""
        print('=== Generating bindings:')
        sources = {}
        for ir in irs:
            print(f'  {ir.module}')
            sources[ir.module] = self.generate_module(ir)
        return sources

    def generate_methods(self, signatures: Sequence[MethodSignature]) -> list[MethodResult]:
        """Generate fragments for independent methods, in input order

        A method that faults yields its GenerationError instead of fragments.
        """
        results: list[Optional[MethodResult]] = [None] * len(signatures)

        if self.jobs <= 1:
            for i, signature in enumerate(signatures):
                try:
                    results[i] = generate_method(self.types, signature)
                except GenerationError as err:
                    results[i] = err
        else:
            with ProcessPoolExecutor(max_workers=self.jobs) as executor:
                futures = {executor.submit(generate_method, self.types, signature): i
                           for i, signature in enumerate(signatures)}
                for future in as_completed(futures):
                    i = futures[future]
                    try:
                        results[i] = future.result()
                    except GenerationError as err:
                        results[i] = err

        for result in results:
            if isinstance(result, GenerationError):
                print(f'  >> warning: {result}')
        return results

    def generate_module(self, ir: IR) -> str:
        """Generate a complete Python module for one IR"""
        config = self._modules.get(ir.module, ModuleConfig(ir.module))
        ignores = self._global_ignores | config.ignores
        gen = CodeGen()

        gen.lines(*HEADER_LINES)
        for line in config.imports:
            gen.line(line)
        gen.line()

        constants = [c for c in ir.constants if c.name not in ignores]
        if constants:
            gen.line()
            const_gen = ConstGenerator()
            for constant in constants:
                const_gen.generate(constant, gen)

        for callback in ir.callbacks:
            if callback.name not in ignores:
                self._gen_callback(callback, gen)

        functions = [f for f in ir.functions if f.name not in ignores]
        if functions:
            self._gen_functions(ir.library or config.library, functions, gen)

        for interface in ir.interfaces:
            self._gen_interface(interface, gen)

        return gen.output() + '\n'

    def _gen_callback(self, callback: CallbackInfo, gen: CodeGen):
        """Generate a callback prototype and its upcall factory"""
        signature = callback.signature
        try:
            with method_faults(callback.name):
                declaration = AbiGenerator(self.types).declaration(signature)
        except GenerationError as err:
            print(f'  >> warning: {err}')
            return

        gen.line()
        gen.line(f'{callback.name} = {declaration.render()}')

        try:
            with method_faults(callback.name):
                body = UpcallGenerator(self.types).body(signature, 'callback__')
        except GenerationError as err:
            print(f'  >> warning: {err}')
            return

        gen.line()
        gen.line()
        with gen.block(f'def {callback.name}_upcall(callback__):'):
            with gen.block(f'def upcall({", ".join(declaration.names)}):'):
                gen.fragment(body)
            gen.line(f'return {callback.name}(upcall)')

    def _gen_functions(self, library: str, functions: list[MethodSignature], gen: CodeGen):
        """Generate bound prototypes and wrappers for free functions"""
        if not library:
            raise ValueError(f'{len(functions)} functions but no library to bind them to')

        gen.line()
        gen.line(f'_lib = abi.load_library({library!r})')

        for signature, result in zip(functions, self.generate_methods(functions)):
            if isinstance(result, GenerationError):
                continue
            gen.line()
            gen.line(f'_{result.name} = {result.abi.render()}(({signature.name!r}, _lib))')
            gen.line()
            gen.line()
            with gen.block(result.declaration):
                gen.fragment(result.body)

    def _gen_interface(self, interface: InterfaceInfo, gen: CodeGen):
        """Generate vtable, wrapper class and upcall bridges of an interface"""
        name = interface.name
        methods = [m if m.interface_method else replace(m, interface_method=True)
                   for m in interface.methods]
        results = self.generate_methods(methods)
        fragments = [r for r in results if isinstance(r, MethodFragments)]

        gen.line()
        for fragment in fragments:
            gen.line(f'{name}_{fragment.name} = {fragment.abi.render()}')

        gen.line()
        gen.line()
        with gen.block(f'class {name}_Vtbl(ctypes.Structure):'):
            with gen.block('_fields_ = ['):
                for signature, result in zip(methods, results):
                    if isinstance(result, GenerationError):
                        slot = PLACEHOLDER_SLOT
                    else:
                        slot = f'{name}_{signature.name}'
                    gen.line(f'({signature.name!r}, {slot}),')
            gen.line(']')

        gen.line()
        gen.line()
        with gen.block(f'class {name}(abi.Interface):'):
            gen.line(f'_vtable_type_ = {name}_Vtbl')
            for fragment in fragments:
                gen.line()
                with gen.block(fragment.declaration):
                    gen.fragment(fragment.body)

        for fragment in fragments:
            names = ', '.join(fragment.abi.names)
            gen.line()
            gen.line()
            with gen.block(f'def {name}_{fragment.name}_upcall({names}):'):
                gen.fragment(fragment.upcall)

        gen.line()
        gen.line()
        if not fragments:
            gen.line(f'{name}._upcalls_ = {{}}')
            return
        with gen.block(f'{name}._upcalls_ = {{'):
            for fragment in fragments:
                gen.line(f'{fragment.name!r}: {name}_{fragment.name}_upcall,')
        gen.line('}')
