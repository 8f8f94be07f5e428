"""
IR (Intermediate Representation) module

Immutable description of native signatures as handed over by the metadata
translator. Nothing in this package mutates these objects.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class TypeCategory(Enum):
    """What a base kind is, as far as the ABI is concerned"""
    VOID = 'void'
    PRIMITIVE = 'primitive'
    STATUS = 'status'        # native status code (HRESULT)
    GUID = 'guid'            # interface identifier
    ENUM = 'enum'
    STRUCT = 'struct'
    INTERFACE = 'interface'
    CALLBACK = 'callback'


@dataclass(frozen=True)
class TypeRef:
    """Base kind of a type signature

    `name` is the logical spelling used in generated code, `abi` the
    bit-compatible ctypes spelling where it differs from `name`.
    """
    name: str
    category: TypeCategory
    abi: str = ''

    @property
    def is_void(self) -> bool:
        return self.category is TypeCategory.VOID

    @property
    def is_udt(self) -> bool:
        return self.category in (TypeCategory.STRUCT, TypeCategory.GUID)

    @property
    def is_interface(self) -> bool:
        return self.category is TypeCategory.INTERFACE

    @property
    def is_status(self) -> bool:
        return self.category is TypeCategory.STATUS

    @property
    def is_guid(self) -> bool:
        return self.category is TypeCategory.GUID


@dataclass(frozen=True)
class TypeSignature:
    """A base kind plus pointer depth"""
    kind: TypeRef
    pointers: int = 0

    def __post_init__(self):
        if self.pointers < 0:
            raise ValueError(f'negative pointer depth for {self.kind.name}: {self.pointers}')

    def deref(self) -> 'TypeSignature':
        """Same kind, one indirection level less"""
        return replace(self, pointers=self.pointers - 1)

    def ref(self) -> 'TypeSignature':
        """Same kind, one indirection level more"""
        return replace(self, pointers=self.pointers + 1)


@dataclass(frozen=True)
class ParamFlags:
    """Direction flags of a raw parameter"""
    input: bool = True
    output: bool = False
    optional: bool = False


@dataclass(frozen=True)
class MethodParam:
    """Raw parameter descriptor paired with its type signature"""
    name: str
    flags: ParamFlags
    signature: TypeSignature

    @classmethod
    def input(cls, name: str, kind: TypeRef, pointers: int = 0,
              optional: bool = False) -> 'MethodParam':
        return cls(name, ParamFlags(optional=optional), TypeSignature(kind, pointers))

    @classmethod
    def output(cls, name: str, kind: TypeRef, pointers: int = 1,
               optional: bool = False) -> 'MethodParam':
        flags = ParamFlags(input=False, output=True, optional=optional)
        return cls(name, flags, TypeSignature(kind, pointers))

    @property
    def is_output(self) -> bool:
        return self.flags.output


@dataclass(frozen=True)
class MethodSignature:
    """Ordered parameters plus an optional native return type

    Parameter order is call order. `interface_method` marks signatures
    that are called through a vtable and receive an implicit `this`.
    """
    name: str
    params: tuple[MethodParam, ...] = ()
    return_sig: Optional[TypeSignature] = None
    interface_method: bool = False

    def __post_init__(self):
        # Accept any sequence but store a tuple so the signature stays hashable
        if not isinstance(self.params, tuple):
            object.__setattr__(self, 'params', tuple(self.params))


@dataclass(frozen=True)
class InterfaceInfo:
    """Interface with its methods in vtable order"""
    name: str
    methods: tuple[MethodSignature, ...] = ()

    def __post_init__(self):
        if not isinstance(self.methods, tuple):
            object.__setattr__(self, 'methods', tuple(self.methods))


@dataclass(frozen=True)
class CallbackInfo:
    """Native function pointer type"""
    name: str
    signature: MethodSignature


@dataclass(frozen=True)
class ConstantInfo:
    """Named constant"""
    name: str
    type: TypeRef
    value: Any


@dataclass
class IR:
    """Everything the generator needs for one output module"""
    module: str
    library: str = ''
    functions: list[MethodSignature] = field(default_factory=list)
    interfaces: list[InterfaceInfo] = field(default_factory=list)
    callbacks: list[CallbackInfo] = field(default_factory=list)
    constants: list[ConstantInfo] = field(default_factory=list)

    def get_interface(self, name: str) -> Optional[InterfaceInfo]:
        """Get interface by name"""
        for interface in self.interfaces:
            if interface.name == name:
                return interface
        return None

    def get_function(self, name: str) -> Optional[MethodSignature]:
        """Get free function by name"""
        for func in self.functions:
            if func.name == name:
                return func
        return None
