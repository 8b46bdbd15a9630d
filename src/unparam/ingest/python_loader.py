"""Build a whole-program model from Python sources.

Every module is one package. Modules found under the requested paths are the
root packages; modules they import that resolve under the search roots are
loaded transitively as dependency packages, so contracts declared in a
dependency still constrain functions in a root module.
"""

from __future__ import annotations

import ast
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from unparam.config import UnparamConfig
from unparam.exceptions import LoadError
from unparam.ingest.annotations import (
    ABC_META_NAMES,
    ABC_NAMES,
    ABSTRACT_DECORATORS,
    OVERLOAD_DECORATORS,
    PROTOCOL_NAMES,
    STATIC_DECORATORS,
    TYPE_ALIAS_NAMES,
    AnnotationResolver,
)
from unparam.ingest.discovery import (
    iter_python_paths,
    module_name_for_path,
    resolve_module,
    search_roots,
)
from unparam.ingest.lowering import FunctionLowerer
from unparam.ingest.visitors import ImportVisitor, ParentAnnotator
from unparam.program.model import (
    Function,
    FunctionMember,
    Member,
    Package,
    Parameter,
    Position,
    Program,
    TypeMember,
)
from unparam.program.types import (
    InterfaceType,
    Method,
    NamedType,
    OpaqueType,
    Signature,
    StructType,
    Var,
)

logger = logging.getLogger(__name__)

# os.abort() is the closest Python analogue of a runtime's fatal abort.
PYTHON_ABORT_PRIMITIVE = "abort"

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda
_TYPE_ALIAS_NODE = getattr(ast, "TypeAlias", ())


@dataclass(frozen=True)
class ModuleUnit:
    name: str
    path: Path
    is_package: bool
    root: bool
    tree: ast.Module
    imports: dict[str, str]
    imported_modules: frozenset[str]


def parse_module(path: Path) -> ast.Module:
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(f"cannot read module: {exc}", path=path) from exc
    try:
        return ast.parse(source, filename=str(path))
    except SyntaxError as exc:
        raise LoadError(f"syntax error: {exc.msg} (line {exc.lineno})", path=path) from exc
    except ValueError as exc:
        raise LoadError(f"cannot parse module: {exc}", path=path) from exc


def _load_unit(path: Path, *, roots: Sequence[Path], root: bool) -> ModuleUnit:
    name, is_package = module_name_for_path(path, roots)
    tree = parse_module(path)
    visitor = ImportVisitor(name, is_package=is_package)
    visitor.visit(tree)
    return ModuleUnit(
        name=name,
        path=path,
        is_package=is_package,
        root=root,
        tree=tree,
        imports=visitor.imports,
        imported_modules=frozenset(visitor.modules),
    )


def _is_excluded(path: Path, roots: Sequence[Path], config: UnparamConfig) -> bool:
    for root in roots:
        try:
            return config.is_ignored_path(path.relative_to(root))
        except ValueError:
            continue
    return False


def load_units(paths: Sequence[Path], *, config: UnparamConfig) -> list[ModuleUnit]:
    roots = search_roots(config)
    units: dict[Path, ModuleUnit] = {}
    for path in iter_python_paths(paths, config=config):
        units[path] = _load_unit(path, roots=roots, root=True)
    if not config.follow_imports:
        return list(units.values())
    pending = deque(units.values())
    while pending:
        unit = pending.popleft()
        for module in sorted(unit.imported_modules):
            dep_path = resolve_module(module, roots)
            if dep_path is None or dep_path in units:
                continue
            if _is_excluded(dep_path, roots, config):
                continue
            logger.debug("loading dependency %s from %s", module, dep_path)
            dep = _load_unit(dep_path, roots=roots, root=False)
            units[dep_path] = dep
            pending.append(dep)
    return list(units.values())


def _ordered_args(args: ast.arguments) -> Iterator[tuple[ast.arg, str]]:
    for arg in args.posonlyargs + args.args:
        yield arg, ""
    if args.vararg:
        yield args.vararg, "*"
    for arg in args.kwonlyargs:
        yield arg, ""
    if args.kwarg:
        yield args.kwarg, "**"


def _decorator_names(node: FunctionNode | ast.ClassDef, resolver: AnnotationResolver) -> set[str]:
    if isinstance(node, ast.Lambda):
        return set()
    names: set[str] = set()
    for deco in node.decorator_list:
        name = resolver.qualified_name(deco)
        if name:
            names.add(name)
    return names


def _is_static(node: FunctionNode, resolver: AnnotationResolver) -> bool:
    return bool(_decorator_names(node, resolver) & STATIC_DECORATORS)


def signature_of(
    node: FunctionNode,
    resolver: AnnotationResolver,
    *,
    has_receiver: bool,
) -> Signature:
    params: list[Var] = []
    for arg, star in _ordered_args(node.args):
        t = resolver.resolve(arg.annotation)
        if star:
            t = OpaqueType(star + t.type_string())
        params.append(Var(arg.arg, t))
    if has_receiver:
        params = params[1:]
    returns = None if isinstance(node, ast.Lambda) else node.returns
    return Signature(params=tuple(params), results=resolver.resolve_results(returns))


def _is_interface(node: ast.ClassDef, resolver: AnnotationResolver) -> bool:
    for base in node.bases:
        target = base.value if isinstance(base, ast.Subscript) else base
        name = resolver.qualified_name(target)
        if name in PROTOCOL_NAMES or name in ABC_NAMES:
            return True
    for keyword in node.keywords:
        if keyword.arg == "metaclass" and resolver.qualified_name(keyword.value) in ABC_META_NAMES:
            return True
    for stmt in node.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if _decorator_names(stmt, resolver) & ABSTRACT_DECORATORS:
                return True
    return False


def _is_contract_method(name: str) -> bool:
    if name == "__call__":
        return True
    return not (name.startswith("__") and name.endswith("__"))


def class_underlying(node: ast.ClassDef, resolver: AnnotationResolver) -> InterfaceType | StructType:
    if _is_interface(node, resolver):
        methods: list[Method] = []
        for stmt in node.body:
            if not isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            if not _is_contract_method(stmt.name):
                continue
            has_receiver = not _is_static(stmt, resolver) and bool(
                stmt.args.posonlyargs + stmt.args.args
            )
            methods.append(
                Method(stmt.name, signature_of(stmt, resolver, has_receiver=has_receiver))
            )
        return InterfaceType(tuple(methods))
    fields: list[Var] = []
    for stmt in node.body:
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            fields.append(Var(stmt.target.id, resolver.resolve(stmt.annotation)))
    return StructType(tuple(fields))


def _module_statements(body: Sequence[ast.stmt]) -> Iterator[ast.stmt]:
    """Module-level statements, looking through if/try wrappers."""
    for stmt in body:
        if isinstance(stmt, ast.If):
            yield from _module_statements(stmt.body)
            yield from _module_statements(stmt.orelse)
        elif isinstance(stmt, ast.Try):
            yield from _module_statements(stmt.body)
            for handler in stmt.handlers:
                yield from _module_statements(handler.body)
            yield from _module_statements(stmt.orelse)
            yield from _module_statements(stmt.finalbody)
        else:
            yield stmt


def _local_names(tree: ast.Module) -> set[str]:
    names: set[str] = set()
    for stmt in _module_statements(tree.body):
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(stmt.name)
        elif isinstance(stmt, ast.Assign):
            names.update(t.id for t in stmt.targets if isinstance(t, ast.Name))
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            names.add(stmt.target.id)
        elif isinstance(stmt, _TYPE_ALIAS_NODE):
            names.add(stmt.name.id)
    return names


def collect_members(tree: ast.Module, resolver: AnnotationResolver) -> tuple[Member, ...]:
    members: list[Member] = []
    for stmt in _module_statements(tree.body):
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            members.append(
                FunctionMember(stmt.name, signature_of(stmt, resolver, has_receiver=False))
            )
        elif isinstance(stmt, ast.ClassDef):
            members.append(TypeMember(stmt.name, class_underlying(stmt, resolver)))
        elif isinstance(stmt, ast.Assign):
            if len(stmt.targets) != 1 or not isinstance(stmt.targets[0], ast.Name):
                continue
            # only function-shaped assignments are treated as type aliases
            alias = resolver.resolve(stmt.value)
            if isinstance(alias, Signature):
                members.append(TypeMember(stmt.targets[0].id, alias))
        elif isinstance(stmt, ast.AnnAssign):
            if stmt.value is None or not isinstance(stmt.target, ast.Name):
                continue
            if resolver.qualified_name(stmt.annotation) in TYPE_ALIAS_NAMES:
                members.append(TypeMember(stmt.target.id, resolver.resolve(stmt.value)))
        elif isinstance(stmt, _TYPE_ALIAS_NODE):
            members.append(TypeMember(stmt.name.id, resolver.resolve(stmt.value)))
    return tuple(members)


def _enclosing_scopes(node: ast.AST, parents: dict[ast.AST, ast.AST]) -> list[str]:
    scopes: list[str] = []
    current = parents.get(node)
    while current is not None:
        if isinstance(current, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            scopes.append(current.name)
        elif isinstance(current, ast.Lambda):
            scopes.append("<lambda>")
        current = parents.get(current)
    return list(reversed(scopes))


def _has_body(node: FunctionNode, unit: ModuleUnit, resolver: AnnotationResolver) -> bool:
    if isinstance(node, ast.Lambda):
        return True
    if unit.path.suffix == ".pyi":
        return False
    if _decorator_names(node, resolver) & OVERLOAD_DECORATORS:
        return False
    for stmt in node.body:
        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant):
            if stmt.value.value is Ellipsis or isinstance(stmt.value.value, str):
                continue
        return True
    return False


class _ProgramBuilder:
    def __init__(self) -> None:
        self.packages: list[Package] = []
        self.functions: list[Function] = []
        self.ids = itertools.count()

    def add_unit(self, unit: ModuleUnit) -> None:
        pkg_index = len(self.packages)
        resolver = AnnotationResolver(
            module=unit.name,
            imports=dict(unit.imports),
            local_names=_local_names(unit.tree),
        )
        self.packages.append(
            Package(path=unit.name, root=unit.root, members=collect_members(unit.tree, resolver))
        )
        annotator = ParentAnnotator()
        annotator.visit(unit.tree)
        nodes = [
            node
            for node in ast.walk(unit.tree)
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda))
        ]
        nodes.sort(key=lambda n: (n.lineno, n.col_offset))
        for node in nodes:
            self.functions.append(
                self._function(node, unit, pkg_index, resolver, annotator.parents)
            )

    def _function(
        self,
        node: FunctionNode,
        unit: ModuleUnit,
        pkg_index: int,
        resolver: AnnotationResolver,
        parents: dict[ast.AST, ast.AST],
    ) -> Function:
        fn_index = len(self.functions)
        scopes = _enclosing_scopes(node, parents)
        name = "<lambda>" if isinstance(node, ast.Lambda) else node.name
        qualname = ".".join([unit.name, *scopes, name])
        parent = parents.get(node)
        args = [arg for arg, _star in _ordered_args(node.args)]
        has_receiver = (
            isinstance(parent, ast.ClassDef)
            and not _is_static(node, resolver)
            and bool(node.args.posonlyargs + node.args.args)
        )
        signature = signature_of(node, resolver, has_receiver=has_receiver)
        blocks = ()
        referrers: dict[int, tuple[int, ...]] = {}
        if _has_body(node, unit, resolver):
            lowered = FunctionLowerer([a.arg for a in args], self.ids).lower_function(node)
            blocks = lowered.blocks
            referrers = lowered.referrers
        filename = str(unit.path)
        params: list[Parameter] = []
        for index, arg in enumerate(args):
            if has_receiver and index == 0:
                par_type = NamedType(".".join([unit.name, *scopes]))
            else:
                par_type = signature.params[index - int(has_receiver)].type
            params.append(
                Parameter(
                    name=arg.arg,
                    index=index,
                    type=par_type,
                    pos=Position(filename, arg.lineno, arg.col_offset + 1),
                    function=fn_index,
                    referrers=referrers.get(index, ()),
                )
            )
        return Function(
            name=qualname,
            package=pkg_index,
            signature=signature,
            params=tuple(params),
            blocks=blocks,
            has_receiver=has_receiver,
        )

    def build(self) -> Program:
        return Program(
            packages=tuple(self.packages),
            functions=tuple(self.functions),
            abort_primitive=PYTHON_ABORT_PRIMITIVE,
        )


def load_program(paths: Sequence[Path], *, config: UnparamConfig | None = None) -> Program:
    """Load, parse and lower every module reachable from ``paths``.

    Raises LoadError when a path is missing, no module is found, or any module
    (root or dependency) cannot be read or parsed.
    """
    if config is None:
        config = UnparamConfig()
    builder = _ProgramBuilder()
    units = load_units(list(paths) or [Path(".")], config=config)
    for unit in units:
        builder.add_unit(unit)
    program = builder.build()
    logger.debug(
        "loaded %d packages (%d roots), %d functions",
        len(program.packages),
        len(program.root_packages()),
        len(program.functions),
    )
    return program
