from src.isa_decoder.lexer import find_record
from src.isa_decoder.records import process_record
from src.isa_decoder.model import CompilationContext, Leaf, Branch
from src.isa_decoder.tree import synthesize, choose_split, partition, residual_bits
from src.isa_decoder.utils import MAX_CODES

def _load(src: str, **kw) -> CompilationContext:
    ctx = CompilationContext(**kw)
    for lineno, line in enumerate(src.splitlines(), start=1):
        rec = find_record(line)
        if rec:
            process_record(ctx, lineno, *rec)
    return ctx

NOP_ADD = """
{Z 8}
{I 00000000 NOP}
{I 0101.... ADD}
"""

def _leaves(node):
    if isinstance(node, Leaf):
        return [node]
    return _leaves(node.zero) + _leaves(node.one)

def test_split_prefers_balanced_msb_first():
    ctx = _load(NOP_ADD)
    mask = [0xFF] * MAX_CODES
    # bit 7 lo fijan ambas a 0 (no discrimina); bit 6 y bit 4 empatan: gana el 6
    assert choose_split(mask, ctx.instructions, 8) == (0, 6)
    zeros, ones = partition(ctx.instructions, 0, 6)
    assert [i.name for i in zeros] == ["NOP"] and [i.name for i in ones] == ["ADD"]

def test_split_skips_unavailable_bits():
    ctx = _load(NOP_ADD)
    mask = [0xFF & ~0x40] + [0xFF] * (MAX_CODES - 1)
    assert choose_split(mask, ctx.instructions, 8) == (0, 4)

def test_split_requires_every_instruction_to_fix_the_bit():
    ctx = _load("{Z 8}\n{I 0000.... A}\n{I 00000001 B}\n")
    assert choose_split([0xFF] * MAX_CODES, ctx.instructions, 8) is None

def test_nop_add_without_error_handler():
    ctx = _load(NOP_ADD)
    res = synthesize(ctx)
    assert res.dropped == 0 and not res.diagnostics
    tree = res.tree
    assert isinstance(tree, Branch) and (tree.word_index, tree.bit_index) == (0, 6)
    assert tree.zero.decoded.name == "NOP" and tree.one.decoded.name == "ADD"
    nop, add = ctx.instructions
    # bits fijos nunca usados como discriminante: alias del opcode
    assert nop.unmatched[0] == 0xBF and nop.duplicate_count == 1 << 7
    assert add.unmatched[0] == 0xB0 and add.duplicate_count == 1 << 3

def test_nop_add_with_error_handler_is_fully_resolved():
    ctx = _load(NOP_ADD + "{E op_illegal}\n")
    res = synthesize(ctx)
    assert res.dropped == 0
    leaves = _leaves(res.tree)
    decoded = [l.decoded.name for l in leaves if l.decoded]
    assert sorted(decoded) == ["ADD", "NOP"]
    # 7 bits de relleno para NOP y 3 para ADD, cada uno con su hoja ilegal
    assert sum(1 for l in leaves if l.is_invalid) == 10
    for inst in ctx.instructions:
        assert inst.duplicate_count == 0
        assert not any(inst.unmatched)

def test_padding_picks_first_residual_bit_on_own_side():
    ctx = _load("{Z 4}\n{E bad}\n{I 10.. X}\n")
    tree = synthesize(ctx).tree
    assert (tree.word_index, tree.bit_index) == (0, 3)
    assert tree.zero.is_invalid and isinstance(tree.one, Branch)
    assert tree.one.bit_index == 2
    assert tree.one.zero.decoded.name == "X" and tree.one.one.is_invalid

def test_identical_patterns_are_reported_as_duplicates():
    ctx = _load("{Z 8}\n{I 00000000 FOO}\n{I 00000000 BAR}\n")
    res = synthesize(ctx, filename="dup.dec")
    assert res.dropped == 2
    assert isinstance(res.tree, Leaf) and res.tree.is_invalid
    msgs = [str(d) for d in res.diagnostics]
    assert any("FOO" in m and "dup.dec:2:" in m for m in msgs)
    assert any("BAR" in m and "dup.dec:3:" in m for m in msgs)

def test_ambiguous_subset_does_not_stop_the_rest():
    ctx = _load("{Z 8}\n{I 1111.... A}\n{I 11111111 B}\n{I 00000000 C}\n")
    res = synthesize(ctx)
    assert res.dropped == 2
    names = [l.decoded.name for l in _leaves(res.tree) if l.decoded]
    assert names == ["C"]

def test_empty_list_is_reported():
    ctx = _load("{Z 8}\n")
    res = synthesize(ctx)
    assert isinstance(res.tree, Leaf) and res.tree.is_invalid
    assert res.dropped == 1 and "hoja vacía" in res.diagnostics[0].message

def test_second_word_discriminates():
    ctx = _load("{Z 8}\n{W 2}\n{I 00000001 00000000 X}\n{I 00000001 00000001 Y}\n")
    tree = synthesize(ctx).tree
    assert (tree.word_index, tree.bit_index) == (1, 0)
    assert residual_bits([0xFF] * MAX_CODES, ctx.instructions[0])[:2] == [0xFF, 0xFF]

def test_mask_state_is_restored():
    ctx = _load(NOP_ADD + "{E e}\n")
    synthesize(ctx)
    again = synthesize(ctx)
    assert again.dropped == 0
    assert sorted(l.decoded.name for l in _leaves(again.tree) if l.decoded) == ["ADD", "NOP"]
