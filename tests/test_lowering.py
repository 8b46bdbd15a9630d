from __future__ import annotations

import ast
import textwrap


def _load():
    from unparam.ingest.lowering import FunctionLowerer, const_repr, free_names
    from unparam.program.model import ConstRef, InstrKind, ParamRef

    return FunctionLowerer, const_repr, free_names, ConstRef, InstrKind, ParamRef


def _lower(code: str):
    FunctionLowerer, *_ = _load()
    node = ast.parse(textwrap.dedent(code)).body[0]
    assert isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    names = [a.arg for a in node.args.posonlyargs + node.args.args]
    if node.args.vararg:
        names.append(node.args.vararg.arg)
    names.extend(a.arg for a in node.args.kwonlyargs)
    if node.args.kwarg:
        names.append(node.args.kwarg.arg)
    lowered = FunctionLowerer(names).lower_function(node)
    return names, lowered


def _used(code: str) -> set[str]:
    names, lowered = _lower(code)
    return {names[i] for i in lowered.referrers}


def _entry_kinds(code: str) -> list[str]:
    _, lowered = _lower(code)
    return [instr.kind.value for instr in lowered.blocks[0].instrs]


def test_simple_reads_are_recorded() -> None:
    used = _used(
        """
        def f(a, b, c):
            x = a + b
            return x
        """
    )
    assert used == {"a", "b"}


def test_pass_body_gets_bare_return() -> None:
    assert _entry_kinds("def f(a):\n    pass\n") == ["return"]
    _, lowered = _lower("def f(a):\n    pass\n")
    assert lowered.blocks[0].instrs[0].operands == ()


def test_constant_return_uses_const_operands() -> None:
    _, _, _, ConstRef, _, _ = _load()
    _, lowered = _lower("def f(a):\n    return 0\n")
    (ret,) = lowered.blocks[0].instrs
    assert ret.operands == (ConstRef("0"),)
    _, lowered = _lower("def f(a):\n    return -1, None\n")
    (ret,) = lowered.blocks[0].instrs
    assert ret.operands == (ConstRef("-1"), ConstRef("None"))


def test_raise_constructor_is_boxed_before_panic() -> None:
    kinds = _entry_kinds(
        """
        def f(a):
            raise NotImplementedError("later")
        """
    )
    assert kinds == ["make_interface", "panic"]


def test_logging_call_keeps_callee_text() -> None:
    _, lowered = _lower(
        """
        def f(a):
            self.logger.info("x")
            return None
        """
    )
    call = lowered.blocks[0].instrs[-2]
    assert call.kind.value == "call"
    assert call.callee == "self.logger.info"


def test_attribute_store_and_subscript_store_are_uses() -> None:
    used = _used(
        """
        def f(obj, key, value, unused):
            obj.attr = value
            obj[key] = 1
        """
    )
    assert used == {"obj", "key", "value"}


def test_rebinding_without_read_is_not_a_use() -> None:
    used = _used(
        """
        def f(a, b):
            a = 1
            b = b + 1
            return a, b
        """
    )
    assert used == {"b"}


def test_conditional_rebinding_keeps_parameter_live() -> None:
    used = _used(
        """
        def f(a, flag):
            if flag:
                a = 1
            return a
        """
    )
    assert used == {"a", "flag"}


def test_closures_and_comprehensions_capture_parameters() -> None:
    used = _used(
        """
        def f(a, b, c, d):
            def inner():
                return a
            g = lambda: b
            return [x for x in c], inner, g
        """
    )
    assert used == {"a", "b", "c"}


def test_nested_shadowing_is_not_a_capture() -> None:
    used = _used(
        """
        def f(a):
            def inner(a):
                return a
            return inner
        """
    )
    assert used == set()


def test_del_and_augmented_assignment_read_parameters() -> None:
    used = _used(
        """
        def f(a, b):
            del a
            b += 1
        """
    )
    assert used == {"a", "b"}


def test_locals_call_uses_every_parameter() -> None:
    used = _used(
        """
        def f(a, b, *args, **kwargs):
            return "{a}".format(**locals())
        """
    )
    assert used == {"a", "b", "args", "kwargs"}


def test_upper_case_parameter_is_not_a_constant() -> None:
    FunctionLowerer, _, _, _, _, ParamRef = _load()
    _, lowered = _lower("def f(N):\n    return N\n")
    (ret,) = lowered.blocks[0].instrs
    assert ret.operands == (ParamRef(0),)


def test_compound_statements_split_blocks() -> None:
    _, lowered = _lower(
        """
        def f(a, items):
            for item in items:
                print(item)
            while a:
                a -= 1
            try:
                pass
            except ValueError as exc:
                raise RuntimeError() from exc
            with open(a) as fh:
                fh.read()
        """
    )
    assert len(lowered.blocks) > 3
    assert [i.kind.value for i in lowered.blocks[0].instrs] == ["range"]
    assert lowered.blocks[-1].instrs[-1].kind.value == "return"


def test_match_statement_reads_subject_and_guards() -> None:
    used = _used(
        """
        def f(subject, limit, other):
            match subject:
                case [x] if x > limit:
                    return x
                case _:
                    return None
        """
    )
    assert used == {"subject", "limit"}


def test_f_string_pieces_are_converted() -> None:
    _, lowered = _lower("def f(a):\n    return f'{a!r} items'\n")
    kinds = [i.kind.value for i in lowered.blocks[0].instrs]
    assert kinds == ["convert", "binop", "return"]


def test_code_after_return_lands_in_new_block() -> None:
    _, lowered = _lower(
        """
        def f(a):
            return 1
            print(a)
        """
    )
    assert [i.kind.value for i in lowered.blocks[0].instrs] == ["return"]
    assert len(lowered.blocks) == 2


def test_instruction_ids_come_from_shared_counter() -> None:
    import itertools

    FunctionLowerer, *_ = _load()
    ids = itertools.count(50)
    node = ast.parse("def f(a):\n    return a\n").body[0]
    lowered = FunctionLowerer(["a"], ids).lower_function(node)
    assert lowered.blocks[0].instrs[0].id == 50
    assert lowered.referrers == {0: (50,)}
    assert next(ids) == 51


def test_const_repr_matches_literals_and_upper_names() -> None:
    _, const_repr, _, _, _, _ = _load()
    expr = lambda code: ast.parse(code, mode="eval").body
    assert const_repr(expr("1")) == "1"
    assert const_repr(expr("-2")) == "-2"
    assert const_repr(expr("'x'")) == "'x'"
    assert const_repr(expr("MAX")) == "MAX"
    assert const_repr(expr("mod.DEFAULT")) == "mod.DEFAULT"
    assert const_repr(expr("value")) is None
    assert const_repr(expr("a + 1")) is None


def test_free_names_excludes_locals_and_arguments() -> None:
    _, _, free_names, *_ = _load()
    node = ast.parse(
        textwrap.dedent(
            """
            def inner(x):
                y = x + outer
                return y + other
            """
        )
    ).body[0]
    assert free_names(node) == {"outer", "other"}


def test_local_bound_to_parameter_reads_through() -> None:
    used = _used(
        """
        def f(b, unused):
            x = b
            return x + 1
        """
    )
    assert used == {"b"}


def test_annotated_alias_and_loop_accumulator_read_parameters() -> None:
    used = _used(
        """
        def g(conf, key: str, items, default):
            value: str = key
            result = default
            for i in items:
                result = result + i
            return conf.get(value), result
        """
    )
    assert used == {"conf", "key", "items", "default"}


def test_alias_that_is_never_read_is_not_a_use() -> None:
    assert _used("def f(b):\n    x = b\n    return 1\n") == set()


def test_top_level_rebinding_ends_alias() -> None:
    used = _used(
        """
        def f(a, b):
            x = a
            x = b
            return x
        """
    )
    assert used == {"b"}


def test_reads_after_return_are_not_uses() -> None:
    used = _used(
        """
        def f(a, b):
            x = b
            return x
            print(a)
        """
    )
    assert used == {"b"}


def test_unreachable_code_is_scoped_to_its_branch() -> None:
    used = _used(
        """
        def f(flag, a, b):
            if flag:
                raise ValueError()
                print(a)
            return b
        """
    )
    assert used == {"flag", "b"}


def test_method_of_local_class_shadows_outer_parameter() -> None:
    _, _, free_names, *_ = _load()
    node = ast.parse(
        textwrap.dedent(
            """
            class C:
                def m(self, a):
                    return a + b
            """
        )
    ).body[0]
    assert free_names(node) == {"b"}


def test_lambda_inside_nested_def_shadows_outer_parameter() -> None:
    used = _used(
        """
        def outer(a, b):
            def g():
                return lambda a: a + b
            return g
        """
    )
    assert used == {"b"}


def test_class_level_names_are_not_visible_in_methods() -> None:
    _, _, free_names, *_ = _load()
    node = ast.parse(
        textwrap.dedent(
            """
            class C:
                a = 1
                def m(self):
                    return a
            """
        )
    ).body[0]
    assert free_names(node) == {"a"}
