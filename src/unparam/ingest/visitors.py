from __future__ import annotations

import ast


class ParentAnnotator(ast.NodeVisitor):
    def __init__(self) -> None:
        self.parents: dict[ast.AST, ast.AST] = {}

    def generic_visit(self, node: ast.AST) -> None:
        for child in ast.iter_child_nodes(node):
            self.parents[child] = node
            self.visit(child)


class ImportVisitor(ast.NodeVisitor):
    """Collect a module's import table: local name -> fully qualified name.

    Only module-level imports are recorded; imports inside functions do not
    affect how annotations at module scope resolve. Modules named by the
    imports (including candidate submodules of ``from x import y``) are
    gathered into ``modules`` for dependency loading.
    """

    def __init__(self, module_name: str, *, is_package: bool = False) -> None:
        self.module = module_name
        self.is_package = is_package
        self.imports: dict[str, str] = {}
        self.modules: set[str] = set()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        return

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        return

    def visit_Lambda(self, node: ast.Lambda) -> None:
        return

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                self.imports[alias.asname] = alias.name
            else:
                head = alias.name.split(".")[0]
                self.imports[head] = head
                self.imports[alias.name] = alias.name
            self.modules.add(alias.name)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        source = self._source_module(node)
        if source is None:
            return
        if source:
            self.modules.add(source)
        for alias in node.names:
            if alias.name == "*":
                continue
            local = alias.asname or alias.name
            fqn = f"{source}.{alias.name}" if source else alias.name
            self.imports[local] = fqn
            self.modules.add(fqn)

    def _source_module(self, node: ast.ImportFrom) -> str | None:
        if node.level == 0:
            return node.module or ""
        parts = self.module.split(".")
        if not self.is_package:
            parts = parts[:-1]
        drop = node.level - 1
        if drop > len(parts):
            return None
        base = parts[: len(parts) - drop]
        if node.module:
            base.append(node.module)
        return ".".join(base)
