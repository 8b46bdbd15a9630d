"""Resolve annotation expressions into program-model types.

Names are qualified through the module's import table, names declared in the
module get the module prefix and builtins stay bare, so two annotations
denote the same type exactly when their rendered identity strings match.
"""

from __future__ import annotations

import ast
import builtins
from dataclasses import dataclass, field

from unparam.program.types import (
    ANY,
    NONE,
    BasicType,
    GenericType,
    NamedType,
    OpaqueType,
    Signature,
    Type,
    UnionType,
    Var,
)

_BUILTIN_NAMES = frozenset(dir(builtins))
CALLABLE_NAMES = frozenset({"Callable", "typing.Callable", "collections.abc.Callable"})
ANY_NAMES = frozenset({"Any", "typing.Any"})
OPTIONAL_NAMES = frozenset({"Optional", "typing.Optional"})
UNION_NAMES = frozenset({"Union", "typing.Union"})
WRAPPER_NAMES = frozenset(
    {
        "ClassVar",
        "typing.ClassVar",
        "Final",
        "typing.Final",
        "Annotated",
        "typing.Annotated",
        "typing_extensions.Annotated",
    }
)
PROTOCOL_NAMES = frozenset({"Protocol", "typing.Protocol", "typing_extensions.Protocol"})
ABC_NAMES = frozenset({"ABC", "abc.ABC"})
ABC_META_NAMES = frozenset({"ABCMeta", "abc.ABCMeta"})
ABSTRACT_DECORATORS = frozenset({"abstractmethod", "abc.abstractmethod"})
OVERLOAD_DECORATORS = frozenset({"overload", "typing.overload", "typing_extensions.overload"})
STATIC_DECORATORS = frozenset({"staticmethod"})
TYPE_ALIAS_NAMES = frozenset({"TypeAlias", "typing.TypeAlias", "typing_extensions.TypeAlias"})


def dotted_name(node: ast.AST) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parts: list[str] = []
        current: ast.AST = node
        while isinstance(current, ast.Attribute):
            parts.append(current.attr)
            current = current.value
        if isinstance(current, ast.Name):
            parts.append(current.id)
            return ".".join(reversed(parts))
        return None
    if isinstance(node, ast.Call):
        return dotted_name(node.func)
    return None


@dataclass
class AnnotationResolver:
    module: str
    imports: dict[str, str] = field(default_factory=dict)
    local_names: set[str] = field(default_factory=set)

    def qualify(self, dotted: str) -> str:
        parts = dotted.split(".")
        for i in range(len(parts), 0, -1):
            prefix = ".".join(parts[:i])
            if prefix in self.imports:
                return ".".join([self.imports[prefix], *parts[i:]])
        if parts[0] in self.local_names:
            return f"{self.module}.{dotted}"
        return dotted

    def qualified_name(self, node: ast.AST) -> str | None:
        dotted = dotted_name(node)
        if dotted is None:
            return None
        return self.qualify(dotted)

    def resolve(self, node: ast.AST | None) -> Type:
        if node is None:
            return ANY
        if isinstance(node, ast.Constant):
            if node.value is None:
                return NONE
            if isinstance(node.value, str):
                return self._resolve_string(node.value)
            if node.value is Ellipsis:
                return OpaqueType("...")
            return OpaqueType(repr(node.value))
        if isinstance(node, (ast.Name, ast.Attribute)):
            return self._resolve_name(node)
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._union([self.resolve(node.left), self.resolve(node.right)])
        if isinstance(node, ast.Subscript):
            return self._resolve_subscript(node)
        if isinstance(node, (ast.List, ast.Tuple)):
            inner = ", ".join(self.resolve(elt).type_string() for elt in node.elts)
            return OpaqueType(f"[{inner}]")
        return OpaqueType(ast.unparse(node))

    def resolve_results(self, node: ast.AST | None) -> tuple[Var, ...]:
        """Results of a function: none when unannotated or annotated None."""
        if node is None:
            return ()
        result = self.resolve(node)
        if result == NONE:
            return ()
        return (Var("", result),)

    def _resolve_string(self, text: str) -> Type:
        try:
            parsed = ast.parse(text.strip(), mode="eval")
        except SyntaxError:
            return OpaqueType(text)
        return self.resolve(parsed.body)

    def _resolve_name(self, node: ast.AST) -> Type:
        qualified = self.qualified_name(node)
        if qualified is None:
            return OpaqueType(ast.unparse(node))
        if qualified in ANY_NAMES:
            return ANY
        if "." not in qualified and qualified in _BUILTIN_NAMES:
            return BasicType(qualified)
        return NamedType(qualified)

    def _resolve_subscript(self, node: ast.Subscript) -> Type:
        origin = self.qualified_name(node.value)
        args = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]
        if origin in CALLABLE_NAMES and len(args) == 2:
            params, result = args
            if isinstance(params, ast.List):
                return Signature(
                    params=tuple(Var("", self.resolve(p)) for p in params.elts),
                    results=self.resolve_results(result),
                )
        if origin in OPTIONAL_NAMES and len(args) == 1:
            return self._union([self.resolve(args[0]), NONE])
        if origin in UNION_NAMES:
            return self._union([self.resolve(arg) for arg in args])
        if origin in WRAPPER_NAMES:
            return self.resolve(args[0])
        return GenericType(self.resolve(node.value), tuple(self.resolve(arg) for arg in args))

    @staticmethod
    def _union(members: list[Type]) -> Type:
        flat: list[Type] = []
        for member in members:
            items = member.members if isinstance(member, UnionType) else (member,)
            for item in items:
                if item not in flat:
                    flat.append(item)
        if len(flat) == 1:
            return flat[0]
        return UnionType(tuple(flat))
