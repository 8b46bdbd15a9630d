"""Lower a Python function body into basic blocks of instructions.

Expressions are lowered in evaluation order into instructions whose operands
name the values they read. A parameter's referrers are the instructions that
have it among their operands, so "unused" means exactly "no instruction reads
it". Compound statements end the current block and open new ones; only the
entry block is inspected by the stub heuristic, so the later blocks exist
mainly to record uses.

A parameter stops being referenced by later loads once it is rebound by an
unconditional statement at function top level; rebinding inside a branch,
loop or handler keeps the parameter live, since the merged value may still be
the incoming argument. A local bound directly to a parameter
(``x = param``) is an alias: reading it reads the parameter. Instructions in
code that follows a return or raise in the same body are kept but are never
referrers, since that code cannot run.
"""

from __future__ import annotations

import ast
import itertools
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from unparam.ingest.annotations import dotted_name
from unparam.program.model import (
    BasicBlock,
    ConstRef,
    InstrKind,
    Instruction,
    Operand,
    ParamRef,
    ValueRef,
)

_INTROSPECTION_CALLS = frozenset({"locals", "vars"})


def const_repr(node: ast.AST) -> str | None:
    if isinstance(node, ast.Constant):
        return repr(node.value)
    if isinstance(node, ast.UnaryOp) and isinstance(
        node.op, (ast.USub, ast.UAdd)
    ) and isinstance(node.operand, ast.Constant):
        return ast.unparse(node)
    if isinstance(node, ast.Name) and node.id.isupper():
        return node.id
    if isinstance(node, ast.Attribute) and node.attr.isupper():
        return ast.unparse(node)
    return None


def callee_name(call: ast.Call) -> str:
    return ast.unparse(call.func)


_SCOPE_NODES = (
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.Lambda,
    ast.ClassDef,
    ast.ListComp,
    ast.SetComp,
    ast.GeneratorExp,
    ast.DictComp,
)


def _arg_names(args: ast.arguments) -> set[str]:
    names = {a.arg for a in args.posonlyargs + args.args + args.kwonlyargs}
    if args.vararg:
        names.add(args.vararg.arg)
    if args.kwarg:
        names.add(args.kwarg.arg)
    return names


def _outer_parts(node: ast.AST) -> list[ast.AST]:
    """Parts of a nested scope that are evaluated in the enclosing scope."""
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
        parts: list[ast.AST] = list(node.args.defaults)
        parts.extend(d for d in node.args.kw_defaults if d is not None)
        if not isinstance(node, ast.Lambda):
            parts.extend(node.decorator_list)
        return parts
    if isinstance(node, ast.ClassDef):
        return [*node.decorator_list, *node.bases, *(kw.value for kw in node.keywords)]
    return []


def _split_scope(roots: Iterable[ast.AST]) -> tuple[list[ast.AST], list[ast.AST]]:
    """Separate the nodes of one scope from the nested scopes it defines."""
    own: list[ast.AST] = []
    nested: list[ast.AST] = []
    stack = list(roots)
    while stack:
        node = stack.pop()
        if isinstance(node, _SCOPE_NODES):
            nested.append(node)
            stack.extend(_outer_parts(node))
            continue
        own.append(node)
        stack.extend(ast.iter_child_nodes(node))
    return own, nested


def _scope_body(node: ast.AST) -> tuple[list[ast.AST], set[str]]:
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        return list(node.body), _arg_names(node.args)
    if isinstance(node, ast.Lambda):
        return [node.body], _arg_names(node.args)
    if isinstance(node, ast.ClassDef):
        return list(node.body), set()
    if isinstance(node, (ast.ListComp, ast.SetComp, ast.GeneratorExp, ast.DictComp)):
        body: list[ast.AST] = [node.key, node.value] if isinstance(node, ast.DictComp) else [node.elt]
        bound: set[str] = set()
        for comp in node.generators:
            body.extend([comp.target, comp.iter, *comp.ifs])
            bound.update(n.id for n in ast.walk(comp.target) if isinstance(n, ast.Name))
        return body, bound
    return [node], set()


def scope_reads(roots: Iterable[ast.AST]) -> set[str]:
    """Names read by ``roots`` directly or captured by scopes nested in them."""
    own, nested = _split_scope(roots)
    names = {
        n.id for n in own if isinstance(n, ast.Name) and not isinstance(n.ctx, ast.Store)
    }
    for child in nested:
        names |= free_names(child)
    return names


def free_names(node: ast.AST) -> set[str]:
    """Names a nested scope reads from its enclosing scope."""
    body, bound = _scope_body(node)
    own, nested = _split_scope(body)
    stored = set(bound)
    reads: set[str] = set()
    nonlocals: set[str] = set()
    for child in own:
        if isinstance(child, ast.Name):
            if isinstance(child.ctx, ast.Store):
                stored.add(child.id)
            else:
                reads.add(child.id)
        elif isinstance(child, ast.Nonlocal):
            nonlocals.update(child.names)
            reads.update(child.names)
        elif isinstance(child, ast.Global):
            stored.update(child.names)
    captured: set[str] = set()
    for child in nested:
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            stored.add(child.name)
        captured |= free_names(child)
    local = stored - nonlocals
    if isinstance(node, ast.ClassDef):
        # class-level names are not visible inside its methods
        return (reads - local) | captured
    return (reads | captured) - local


@dataclass
class LoweredBody:
    blocks: tuple[BasicBlock, ...]
    referrers: dict[int, tuple[int, ...]] = field(default_factory=dict)


class FunctionLowerer:
    def __init__(self, param_names: list[str], ids: Iterator[int] | None = None) -> None:
        self.params = {name: i for i, name in enumerate(param_names)}
        self.ids = ids if ids is not None else itertools.count()
        self._blocks: list[list[Instruction]] = [[]]
        self._referrers: dict[int, list[int]] = {}
        self._rebound: set[str] = set()
        # locals currently holding a parameter value, e.g. after ``x = param``
        self._aliases: dict[str, ParamRef] = {}
        self._depth = 0
        self._dead = False
        self._unreachable = False

    # -- driver -----------------------------------------------------------

    def lower_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda) -> LoweredBody:
        if isinstance(node, ast.Lambda):
            self._emit(InstrKind.RETURN, self._return_operands(node.body))
        else:
            self._lower_body(node.body)
            if not self._dead:
                self._emit(InstrKind.RETURN)
        blocks = tuple(
            BasicBlock(index=i, instrs=tuple(instrs)) for i, instrs in enumerate(self._blocks)
        )
        referrers = {index: tuple(ids) for index, ids in self._referrers.items()}
        return LoweredBody(blocks=blocks, referrers=referrers)

    # -- emission helpers ---------------------------------------------------

    def _emit(
        self,
        kind: InstrKind,
        operands: Iterable[Operand] = (),
        *,
        callee: str = "",
    ) -> ValueRef:
        if self._dead:
            # code after a return or raise starts an unreachable block
            self._blocks.append([])
            self._dead = False
        instr = Instruction(id=next(self.ids), kind=kind, operands=tuple(operands), callee=callee)
        self._blocks[-1].append(instr)
        if not self._unreachable:
            for operand in instr.operands:
                if isinstance(operand, ParamRef):
                    self._referrers.setdefault(operand.index, []).append(instr.id)
        return ValueRef(f"t{instr.id}")

    def _new_block(self) -> None:
        if self._blocks[-1]:
            self._blocks.append([])
        self._dead = False

    def _branch(self, kind: InstrKind, operands: Iterable[Operand] = ()) -> None:
        self._emit(kind, operands)
        self._new_block()

    def _load(self, name: str) -> Operand:
        index = self.params.get(name)
        if index is not None and name not in self._rebound:
            return ParamRef(index)
        alias = self._aliases.get(name)
        if alias is not None:
            return alias
        return ValueRef(name)

    def _bind(self, name: str, value: Operand | None = None) -> None:
        if isinstance(value, ParamRef):
            self._aliases[name] = value
        elif self._depth == 0:
            self._aliases.pop(name, None)
        if self._depth == 0 and name in self.params:
            self._rebound.add(name)

    def _closure_bindings(self, node: ast.AST) -> list[Operand]:
        return [
            operand
            for name in sorted(free_names(node))
            if isinstance(operand := self._load(name), ParamRef)
        ]

    def _lower_body(self, stmts: Iterable[ast.stmt]) -> None:
        for stmt in stmts:
            self.lower_stmt(stmt)
            if self._dead:
                # the rest of this body follows a return or raise
                self._unreachable = True

    def _nested(self, stmts: Iterable[ast.stmt]) -> None:
        reachable = not self._unreachable
        self._depth += 1
        try:
            self._lower_body(stmts)
        finally:
            self._depth -= 1
            if reachable:
                self._unreachable = False

    # -- statements -----------------------------------------------------------

    def lower_stmt(self, node: ast.stmt) -> None:
        method = getattr(self, f"_stmt_{type(node).__name__}", None)
        if method is not None:
            method(node)
            return
        # Statements without a dedicated rule still record their reads.
        self._emit(InstrKind.OTHER, self._generic_operands(node))

    def _stmt_Expr(self, node: ast.Expr) -> None:
        if isinstance(node.value, ast.Constant):
            return
        self.lower_expr(node.value)

    def _stmt_Pass(self, node: ast.Pass) -> None:
        return

    def _stmt_Global(self, node: ast.Global) -> None:
        return

    def _stmt_Nonlocal(self, node: ast.Nonlocal) -> None:
        return

    def _stmt_Assign(self, node: ast.Assign) -> None:
        value = self.lower_expr(node.value)
        for target in node.targets:
            self._store(target, value)

    def _stmt_AnnAssign(self, node: ast.AnnAssign) -> None:
        if node.value is None:
            return
        self._store(node.target, self.lower_expr(node.value))

    def _stmt_AugAssign(self, node: ast.AugAssign) -> None:
        current = self.lower_expr(node.target)
        value = self.lower_expr(node.value)
        result = self._emit(InstrKind.BINOP, [current, value])
        self._store(node.target, result)

    def _stmt_Delete(self, node: ast.Delete) -> None:
        for target in node.targets:
            self._emit(InstrKind.OTHER, [self.lower_expr(target)])

    def _stmt_Return(self, node: ast.Return) -> None:
        self._emit(InstrKind.RETURN, self._return_operands(node.value))
        self._dead = True

    def _stmt_Raise(self, node: ast.Raise) -> None:
        operands: list[Operand] = []
        if node.exc is not None:
            operands.append(self._exception_value(node.exc))
        if node.cause is not None:
            operands.append(self.lower_expr(node.cause))
        self._emit(InstrKind.PANIC, operands)
        self._dead = True

    def _stmt_Assert(self, node: ast.Assert) -> None:
        self._branch(InstrKind.IF, [self.lower_expr(node.test)])
        operands = [] if node.msg is None else [self.lower_expr(node.msg)]
        self._emit(InstrKind.PANIC, operands)
        self._new_block()

    def _stmt_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self._emit(InstrKind.OTHER, callee=alias.name)
            self._bind(alias.asname or alias.name.split(".")[0])

    def _stmt_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._emit(InstrKind.OTHER, callee=node.module or "")
        for alias in node.names:
            self._bind(alias.asname or alias.name)

    def _stmt_If(self, node: ast.If) -> None:
        self._branch(InstrKind.IF, [self.lower_expr(node.test)])
        self._nested(node.body)
        self._new_block()
        self._nested(node.orelse)
        self._new_block()

    def _stmt_While(self, node: ast.While) -> None:
        self._branch(InstrKind.JUMP)
        self._depth += 1
        try:
            self._branch(InstrKind.IF, [self.lower_expr(node.test)])
        finally:
            self._depth -= 1
        self._nested(node.body)
        self._new_block()
        self._nested(node.orelse)
        self._new_block()

    def _stmt_For(self, node: ast.For | ast.AsyncFor) -> None:
        self._branch(InstrKind.RANGE, [self.lower_expr(node.iter)])
        self._depth += 1
        try:
            self._store(node.target, self._emit(InstrKind.NEXT))
        finally:
            self._depth -= 1
        self._nested(node.body)
        self._new_block()
        self._nested(node.orelse)
        self._new_block()

    _stmt_AsyncFor = _stmt_For

    def _stmt_With(self, node: ast.With | ast.AsyncWith) -> None:
        operands = [self.lower_expr(item.context_expr) for item in node.items]
        self._branch(InstrKind.JUMP, operands)
        self._depth += 1
        try:
            for item in node.items:
                if item.optional_vars is not None:
                    self._store(item.optional_vars, ValueRef("__enter__"))
        finally:
            self._depth -= 1
        self._nested(node.body)
        self._new_block()

    _stmt_AsyncWith = _stmt_With

    def _stmt_Try(self, node: ast.Try) -> None:
        self._branch(InstrKind.JUMP)
        self._nested(node.body)
        for handler in node.handlers:
            self._new_block()
            self._depth += 1
            try:
                if handler.type is not None:
                    self._emit(InstrKind.TYPE_ASSERT, [self.lower_expr(handler.type)])
                if handler.name:
                    self._bind(handler.name)
            finally:
                self._depth -= 1
            self._nested(handler.body)
        self._new_block()
        self._nested(node.orelse)
        self._new_block()
        self._nested(node.finalbody)
        self._new_block()

    _stmt_TryStar = _stmt_Try

    def _stmt_Match(self, node: ast.Match) -> None:
        self._branch(InstrKind.IF, [self.lower_expr(node.subject)])
        for case in node.cases:
            self._new_block()
            self._depth += 1
            try:
                reads = [self._load(name) for name in sorted(scope_reads([case.pattern]))]
                for child in ast.walk(case.pattern):
                    if isinstance(child, ast.MatchValue):
                        reads.append(self.lower_expr(child.value))
                if case.guard is not None:
                    reads.append(self.lower_expr(case.guard))
                self._emit(InstrKind.IF, reads)
            finally:
                self._depth -= 1
            self._nested(case.body)
        self._new_block()

    def _stmt_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        operands = self._definition_operands(node.decorator_list)
        for default in [*node.args.defaults, *[d for d in node.args.kw_defaults if d is not None]]:
            operands.append(self.lower_expr(default))
        operands.extend(self._closure_bindings(node))
        self._emit(InstrKind.MAKE_CLOSURE, operands, callee=node.name)
        self._bind(node.name)

    _stmt_AsyncFunctionDef = _stmt_FunctionDef

    def _stmt_ClassDef(self, node: ast.ClassDef) -> None:
        operands = self._definition_operands(node.decorator_list)
        operands.extend(self.lower_expr(base) for base in node.bases)
        operands.extend(self.lower_expr(kw.value) for kw in node.keywords)
        operands.extend(self._closure_bindings(node))
        self._emit(InstrKind.OTHER, operands, callee=node.name)
        self._bind(node.name)

    def _definition_operands(self, decorators: list[ast.expr]) -> list[Operand]:
        return [self.lower_expr(deco) for deco in decorators]

    # -- stores ---------------------------------------------------------------

    def _store(self, target: ast.AST, value: Operand) -> None:
        if isinstance(target, ast.Name):
            self._bind(target.id, value)
        elif isinstance(target, ast.Attribute):
            obj = self.lower_expr(target.value)
            self._emit(InstrKind.STORE, [obj, value])
        elif isinstance(target, ast.Subscript):
            obj = self.lower_expr(target.value)
            key = self.lower_expr(target.slice)
            self._emit(InstrKind.STORE, [obj, key, value])
        elif isinstance(target, (ast.Tuple, ast.List)):
            for elt in target.elts:
                self._store(elt, self._emit(InstrKind.EXTRACT, [value]))
        elif isinstance(target, ast.Starred):
            self._store(target.value, value)
        else:
            self._emit(InstrKind.OTHER, [value, *self._generic_operands(target)])

    # -- expressions ------------------------------------------------------------

    def _return_operands(self, value: ast.expr | None) -> list[Operand]:
        if value is None:
            return []
        if isinstance(value, ast.Tuple) and value.elts:
            return [self.lower_expr(elt) for elt in value.elts]
        if isinstance(value, ast.Tuple):
            return [ConstRef("()")]
        return [self.lower_expr(value)]

    def _exception_value(self, node: ast.expr) -> Operand:
        # Constructing the raised exception boxes the panic value.
        if isinstance(node, ast.Call):
            operands = self._call_arguments(node)
            return self._emit(InstrKind.MAKE_INTERFACE, operands, callee=callee_name(node))
        return self.lower_expr(node)

    def lower_expr(self, node: ast.AST) -> Operand:
        const = self._const(node)
        if const is not None:
            return ConstRef(const)
        method = getattr(self, f"_expr_{type(node).__name__}", None)
        if method is not None:
            return method(node)
        return self._emit(InstrKind.OTHER, self._generic_operands(node))

    def _const(self, node: ast.AST) -> str | None:
        const = const_repr(node)
        if const is None:
            return None
        # an upper-case parameter name is still a parameter
        names = {n.id for n in ast.walk(node) if isinstance(n, ast.Name)}
        if any(isinstance(self._load(name), ParamRef) for name in names):
            return None
        return const

    def _generic_operands(self, node: ast.AST) -> list[Operand]:
        return [self._load(name) for name in sorted(scope_reads([node]))]

    def _expr_Name(self, node: ast.Name) -> Operand:
        return self._load(node.id)

    def _expr_Attribute(self, node: ast.Attribute) -> Operand:
        return self._emit(InstrKind.FIELD_ADDR, [self.lower_expr(node.value)])

    def _expr_Subscript(self, node: ast.Subscript) -> Operand:
        value = self.lower_expr(node.value)
        if isinstance(node.slice, ast.Slice):
            parts = [node.slice.lower, node.slice.upper, node.slice.step]
            operands = [self.lower_expr(p) for p in parts if p is not None]
            return self._emit(InstrKind.SLICE, [value, *operands])
        return self._emit(InstrKind.LOOKUP, [value, self.lower_expr(node.slice)])

    def _expr_Slice(self, node: ast.Slice) -> Operand:
        parts = [node.lower, node.upper, node.step]
        return self._emit(InstrKind.SLICE, [self.lower_expr(p) for p in parts if p is not None])

    def _expr_Starred(self, node: ast.Starred) -> Operand:
        return self.lower_expr(node.value)

    def _expr_BinOp(self, node: ast.BinOp) -> Operand:
        return self._emit(InstrKind.BINOP, [self.lower_expr(node.left), self.lower_expr(node.right)])

    def _expr_BoolOp(self, node: ast.BoolOp) -> Operand:
        return self._emit(InstrKind.BINOP, [self.lower_expr(v) for v in node.values])

    def _expr_Compare(self, node: ast.Compare) -> Operand:
        operands = [self.lower_expr(node.left)]
        operands.extend(self.lower_expr(c) for c in node.comparators)
        return self._emit(InstrKind.BINOP, operands)

    def _expr_UnaryOp(self, node: ast.UnaryOp) -> Operand:
        return self._emit(InstrKind.UNOP, [self.lower_expr(node.operand)])

    def _expr_IfExp(self, node: ast.IfExp) -> Operand:
        operands = [self.lower_expr(node.test), self.lower_expr(node.body), self.lower_expr(node.orelse)]
        return self._emit(InstrKind.IF, operands)

    def _expr_Dict(self, node: ast.Dict) -> Operand:
        operands: list[Operand] = []
        for key, value in zip(node.keys, node.values):
            if key is not None:
                operands.append(self.lower_expr(key))
            operands.append(self.lower_expr(value))
        return self._emit(InstrKind.MAKE_MAP, operands)

    def _expr_List(self, node: ast.List | ast.Tuple | ast.Set) -> Operand:
        return self._emit(InstrKind.ALLOC, [self.lower_expr(elt) for elt in node.elts])

    _expr_Tuple = _expr_List
    _expr_Set = _expr_List

    def _expr_JoinedStr(self, node: ast.JoinedStr) -> Operand:
        operands: list[Operand] = []
        for value in node.values:
            if isinstance(value, ast.FormattedValue):
                operands.append(self._expr_FormattedValue(value))
        return self._emit(InstrKind.BINOP, operands)

    def _expr_FormattedValue(self, node: ast.FormattedValue) -> Operand:
        operands = [self.lower_expr(node.value)]
        if node.format_spec is not None:
            operands.append(self.lower_expr(node.format_spec))
        return self._emit(InstrKind.CONVERT, operands)

    def _expr_NamedExpr(self, node: ast.NamedExpr) -> Operand:
        value = self.lower_expr(node.value)
        self._depth += 1
        try:
            self._store(node.target, value)
        finally:
            self._depth -= 1
        return value

    def _expr_Await(self, node: ast.Await) -> Operand:
        return self._emit(InstrKind.AWAIT, [self.lower_expr(node.value)])

    def _expr_Yield(self, node: ast.Yield | ast.YieldFrom) -> Operand:
        operands = [] if node.value is None else [self.lower_expr(node.value)]
        return self._emit(InstrKind.YIELD, operands)

    _expr_YieldFrom = _expr_Yield

    def _expr_Lambda(self, node: ast.Lambda) -> Operand:
        operands = [self.lower_expr(d) for d in node.args.defaults]
        operands.extend(self.lower_expr(d) for d in node.args.kw_defaults if d is not None)
        operands.extend(self._closure_bindings(node))
        return self._emit(InstrKind.MAKE_CLOSURE, operands, callee="<lambda>")

    def _expr_ListComp(self, node: ast.AST) -> Operand:
        return self._emit(InstrKind.MAKE_CLOSURE, self._closure_bindings(node))

    _expr_SetComp = _expr_ListComp
    _expr_DictComp = _expr_ListComp
    _expr_GeneratorExp = _expr_ListComp

    def _expr_Call(self, node: ast.Call) -> Operand:
        operands: list[Operand] = []
        func = node.func
        if isinstance(func, ast.Attribute):
            # Method lookup is part of the call; only the receiver is read.
            operands.append(self.lower_expr(func.value))
        else:
            operands.append(self.lower_expr(func))
        operands.extend(self._call_arguments(node))
        if dotted_name(func) in _INTROSPECTION_CALLS and not node.args and not node.keywords:
            operands.extend(ParamRef(i) for i in sorted(self.params.values()))
        return self._emit(InstrKind.CALL, operands, callee=callee_name(node))

    def _call_arguments(self, node: ast.Call) -> list[Operand]:
        operands = [self.lower_expr(arg) for arg in node.args]
        operands.extend(self.lower_expr(kw.value) for kw in node.keywords)
        return operands
