import pytest
from src.isa_decoder.lexer import find_record
from src.isa_decoder.records import process_record
from src.isa_decoder.model import CompilationContext, Branch, BranchRow, LeafRow
from src.isa_decoder.tree import synthesize
from src.isa_decoder.sequencer import sequence, walk, build_table, lookup

AVR = """
{Z 16}
{W 1}
{I 0000000000000000 NOP}
{I 000011rdddddrrrr ADD}
{I 000111rdddddrrrr ADC}
{I 1110KKKKddddKKKK LDI}
{I 1001010100001000 RET}
{I 1001010ddddd0000 COM}
{I 1111100ddddd0bbb BLD}
"""

def _load(src: str, **kw) -> CompilationContext:
    ctx = CompilationContext(**kw)
    for lineno, line in enumerate(src.splitlines(), start=1):
        rec = find_record(line)
        if rec:
            process_record(ctx, lineno, *rec)
    return ctx

def _concrete(word, size):
    """Todos los valores concretos compatibles con opcode/mask."""
    free = [b for b in range(size) if not (word.mask >> b) & 1]
    for combo in range(1 << len(free)):
        v = word.opcode
        for i, b in enumerate(free):
            if (combo >> i) & 1:
                v |= 1 << b
        yield v

def _build(src, **kw):
    ctx = _load(src, **kw)
    res = synthesize(ctx)
    size = sequence(res.tree, 0)
    return ctx, res, size, build_table(res.tree)

def test_preorder_indices_without_gaps():
    ctx, res, size, rows = _build(AVR)
    assert [n.index for n in walk(res.tree)] == list(range(size))
    assert [r.index for r in rows] == list(range(size))
    branches = [n for n in walk(res.tree) if isinstance(n, Branch)]
    assert size == 2 * len(branches) + 1
    for b in branches:
        assert b.zero.index == b.index + 1
        assert b.one.index > b.zero.index

def test_jump_is_one_child_distance():
    ctx, res, size, rows = _build(AVR)
    for n in walk(res.tree):
        if isinstance(n, Branch):
            row = rows[n.index]
            assert isinstance(row, BranchRow)
            assert row.jump == n.one.index - n.index
            assert row.mask == 1 << n.bit_index

@pytest.mark.parametrize("handler", [None, "op_illegal"])
def test_round_trip_every_argument_value(handler):
    src = AVR + (f"{{E {handler}}}\n" if handler else "")
    ctx, res, size, rows = _build(src)
    assert res.dropped == 0
    for inst in ctx.instructions:
        k = 16 - bin(inst.words[0].mask).count("1")
        values = list(_concrete(inst.words[0], 16))
        assert len(values) == 2 ** k
        reached = {lookup(rows, [v]).instruction for v in values}
        assert reached == {inst}

def test_error_handler_rejects_unknown_opcodes():
    ctx, res, size, rows = _build(AVR + "{E op_illegal}\n")
    known = set()
    for inst in ctx.instructions:
        known.update(_concrete(inst.words[0], 16))
    for v in range(0x10000):
        row = lookup(rows, [v])
        assert isinstance(row, LeafRow)
        assert (row.instruction is not None) == (v in known)

def test_sequence_is_idempotent():
    ctx, res, size, rows = _build(AVR)
    assert sequence(res.tree, 0) == size
    assert build_table(res.tree) == rows

def test_sequence_offset_start():
    ctx, res, size, rows = _build(AVR)
    assert sequence(res.tree, 10) == size + 10
    assert res.tree.index == 10
