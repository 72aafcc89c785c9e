import logging

import pytest

from irinspect import IRParseError, load_module, parse_module
from irinspect.ir import (
    BasicBlock,
    ConstantInt,
    Function,
    GlobalVariable,
    OpcodeClass,
)
from irinspect.ir.loader import (
    allocated_type_of,
    predicate_of,
    split_top_level,
    with_data_layout,
)


CLANG_OUTPUT = """; ModuleID = 'hello.c'
source_filename = "hello.c"
target datalayout = "e-m:e-p270:32:32-p271:32:32-p272:64:64-i64:64-i128:128-f80:128-n8:16:32:64-S128"
target triple = "x86_64-pc-linux-gnu"

%struct.node = type { i32, ptr }

@.str = private unnamed_addr constant [7 x i8] c"%d %s\\0A\\00", align 1
@counter = dso_local global i32 0, align 4

; Function Attrs: noinline nounwind optnone uwtable
define dso_local i32 @main(i32 noundef %0, ptr noundef %1) #0 {
  %3 = alloca i32, align 4
  %4 = load i32, ptr @counter, align 4
  %5 = call i32 (ptr, ...) @printf(ptr noundef @.str, i32 noundef %4, ptr noundef %1)
  switch i32 %0, label %8 [
    i32 1, label %6
    i32 2, label %7
  ]

6:                                                ; preds = %2
  br label %8

7:                                                ; preds = %2
  br label %8

8:                                                ; preds = %7, %6, %2
  %9 = phi i32 [ 1, %6 ], [ 2, %7 ], [ 0, %2 ]
  ret i32 %9, !note !1
}

declare i32 @printf(ptr noundef, ...) #1

attributes #0 = { noinline nounwind optnone uwtable }
attributes #1 = { "frame-pointer"="all" }

!llvm.module.flags = !{!0}
!0 = !{i32 1, !"wchar_size", i32 4}
!1 = !{!"marker"}
"""

EXCEPTION_SHAPES = """
@_ZTIi = external constant ptr

declare i32 @__gxx_personality_v0(...)
declare void @may_throw()

define void @shapes(<4 x i32> %a, <4 x i32> %b) personality ptr @__gxx_personality_v0 {
entry:
  %mixed = shufflevector <4 x i32> %a, <4 x i32> %b, <4 x i32> <i32 0, i32 4, i32 1, i32 5>
  invoke void @may_throw() to label %next unwind label %cleanup

next:
  invoke void @may_throw() to label %done unwind label %handler

cleanup:
  %pad = landingpad { ptr, i32 } cleanup
  resume { ptr, i32 } %pad

handler:
  %caught = landingpad { ptr, i32 } catch ptr @_ZTIi filter [1 x ptr] [ptr @_ZTIi]
  resume { ptr, i32 } %caught

done:
  ret void
}
"""


def test_module_settings_and_globals() -> None:
    module = parse_module(CLANG_OUTPUT)

    assert module.name == "hello.c"
    assert module.source_filename == "hello.c"
    assert module.target_triple == "x86_64-pc-linux-gnu"
    assert module.data_layout.abi_alignment("i64") == 8
    assert [variable.name for variable in module.globals] == [".str", "counter"]
    text = module.globals[0]
    assert isinstance(text, GlobalVariable)
    assert text.value_type == "[7 x i8]"
    assert text.render().startswith("@.str = private unnamed_addr constant [7 x i8]")


def test_functions_in_source_order() -> None:
    module = parse_module(CLANG_OUTPUT)

    assert [function.name for function in module] == ["main", "printf"]
    main, printf = module.functions
    assert not main.is_declaration
    assert printf.is_declaration
    assert printf.vararg
    assert printf.return_type == "i32"
    assert printf.render().startswith("declare i32 @printf(ptr noundef, ...)")
    assert [argument.type for argument in main.arguments] == ["i32", "ptr"]
    assert not any(argument.has_name for argument in main.arguments)


def test_numbered_blocks_and_values() -> None:
    main = parse_module(CLANG_OUTPUT).get_function("main")

    assert all(not block.has_name for block in main)
    assert [block.render() for block in main.blocks[1:]] == ["label %6", "label %7", "label %8"]
    assert [instruction.has_name for instruction in main.entry] == [False] * 4
    assert main.entry.instructions[1].render() == "%4 = load i32, ptr @counter, align 4"


def test_call_through_varargs_signature() -> None:
    main = parse_module(CLANG_OUTPUT).get_function("main")
    call = main.entry.instructions[2]

    assert call.kind is OpcodeClass.CALL
    assert isinstance(call.callee, Function)
    assert call.callee.name == "printf"
    assert call.type == "i32"
    assert len(call.arguments) == 3
    assert call.arguments[0].name == ".str"


def test_switch_successors_and_phi_operands() -> None:
    main = parse_module(CLANG_OUTPUT).get_function("main")
    switch = main.entry.instructions[-1]
    phi = main.back.instructions[0]

    assert switch.opcode == "switch"
    assert [block.render() for block in switch.successors] == ["label %8", "label %6", "label %7"]
    assert [operand.value for operand in phi.operands] == [1, 2, 0]
    assert all(isinstance(operand, ConstantInt) for operand in phi.operands)


def test_metadata_attachments_are_not_operands() -> None:
    main = parse_module(CLANG_OUTPUT).get_function("main")
    ret = main.back.instructions[-1]

    assert len(ret.operands) == 1
    assert ret.operands[0] is main.back.instructions[0]


def test_conditional_branch_successors_follow_true_false_order() -> None:
    function = parse_module(
        """
define void @pick(i1 %c) {
entry:
  br i1 %c, label %yes, label %no
yes:
  ret void
no:
  ret void
}
"""
    ).get_function("pick")
    branch = function.entry.instructions[0]

    assert [block.name for block in branch.successors] == ["yes", "no"]
    assert branch.operands[0].render() == "i1 %c"


def test_shufflevector_mask_is_not_an_operand() -> None:
    shuffle = parse_module(EXCEPTION_SHAPES).get_function("shapes").entry.instructions[0]

    assert shuffle.opcode == "shufflevector"
    assert [operand.render() for operand in shuffle.operands] == ["<4 x i32> %a", "<4 x i32> %b"]


def test_cleanup_landingpad_has_no_operands() -> None:
    function = parse_module(EXCEPTION_SHAPES).get_function("shapes")
    pad = function.blocks[2].instructions[0]

    assert pad.opcode == "landingpad"
    assert pad.operands == []


def test_landingpad_has_one_operand_per_clause() -> None:
    function = parse_module(EXCEPTION_SHAPES).get_function("shapes")
    pad = function.blocks[3].instructions[0]

    assert pad.opcode == "landingpad"
    assert len(pad.operands) == 2
    assert isinstance(pad.operands[0], GlobalVariable)


def test_invoke_lists_normal_then_unwind_destination() -> None:
    invoke = parse_module(EXCEPTION_SHAPES).get_function("shapes").entry.instructions[1]

    assert [block.name for block in invoke.successors] == ["next", "cleanup"]


def test_named_struct_types_are_measured() -> None:
    module = parse_module(
        """
%struct.node = type { i32, ptr }

define void @touch() {
entry:
  %n = alloca %struct.node, align 8
  %many = alloca { i8, i32 }, i32 3
  ret void
}
"""
    )
    node, many = module.get_function("touch").entry.instructions[:2]

    assert node.allocated_type == "%struct.node"
    assert node.align == 8
    assert module.data_layout.alloc_size(node.allocated_type) == 16
    assert many.allocated_type == "{ i8, i32 }"
    assert many.align is not None


def test_data_layout_override() -> None:
    module = parse_module(CLANG_OUTPUT, data_layout="e-i64:32")

    assert module.data_layout.spec == "e-i64:32"
    assert module.data_layout.abi_alignment("i64") == 4


def test_data_layout_override_without_layout_keeps_line_numbers() -> None:
    text = "define i32 @f() {\nentry:\n  ret i32 %missing\n}\n"

    with pytest.raises(IRParseError) as excinfo:
        parse_module(text, data_layout="e-i64:32")

    assert excinfo.value.line == 3


def test_with_data_layout_replaces_existing_line() -> None:
    replaced = with_data_layout('target datalayout = "e"\ndeclare void @f()\n', "E-p:32:32")

    assert replaced == 'target datalayout = "E-p:32:32"\ndeclare void @f()\n'


def test_load_module_uses_path_as_name(tmp_path) -> None:
    path = tmp_path / "simple.ll"
    path.write_text("define void @f() {\nentry:\n  ret void\n}\n", encoding="utf-8")

    module = load_module(path)

    assert module.name == str(path)
    assert isinstance(module.get_function("f").entry, BasicBlock)


def test_module_without_id_uses_placeholder_name() -> None:
    assert parse_module("declare void @f()\n").name == "<string>"


def test_repeated_parses_keep_struct_names() -> None:
    text = "%struct.pair = type { i8, i32 }\n@p = global %struct.pair zeroinitializer\n"

    first = parse_module(text)
    second = parse_module(text)

    assert first.globals[0].value_type == second.globals[0].value_type == "%struct.pair"


def test_functions_are_logged(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="irinspect.ir.loader"):
        parse_module(CLANG_OUTPUT)

    assert "@main: 4 blocks" in caplog.text


@pytest.mark.parametrize(
    "text, message",
    [
        ("define i32 @f() {\nentry:\n  ret i32 %missing\n}\n", "use of undefined value '%missing'"),
        ("define void @f() {\nentry:\n  call void @nowhere()\n  ret void\n}\n", "use of undefined value '@nowhere'"),
        ("define void @f() {\nentry:\n  frobnicate\n  ret void\n}\n", "instruction"),
        ("this is not ir\n", "top-level entity"),
        ("declare void @f()\ndeclare void @f()\n", "redefinition"),
        ('target datalayout = "e-Q32"\n', ""),
    ],
)
def test_parse_errors(text: str, message: str) -> None:
    with pytest.raises(IRParseError, match=message):
        parse_module(text)


def test_parse_error_reports_line_number() -> None:
    with pytest.raises(IRParseError) as excinfo:
        parse_module("\n\ndefine i32 @f() {\nentry:\n  ret i32 %missing\n}\n")

    assert excinfo.value.line == 5
    assert str(excinfo.value).startswith("line 5: ")


def test_text_helpers() -> None:
    assert allocated_type_of("%p = alloca [4 x { i8, i32 }], i32 2, align 16") == "[4 x { i8, i32 }]"
    assert allocated_type_of("%p = alloca inalloca i32, align 4") == "i32"
    assert predicate_of("icmp", "%c = icmp samesign ult i32 %a, %b") == "ult"
    assert predicate_of("fcmp", "%c = fcmp fast oge double %a, %b") == "oge"


def test_split_top_level_respects_brackets_and_quotes() -> None:
    assert split_top_level('i32 1, { i8, i8 } zeroinitializer, c"a,b"') == [
        "i32 1",
        "{ i8, i8 } zeroinitializer",
        'c"a,b"',
    ]
    assert split_top_level("") == []
