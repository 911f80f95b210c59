# src/isa_decoder/emitter.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from .model import BranchRow, CompilationContext, DecisionNode, Instruction, Row
from .sequencer import build_table
from .utils import to_hex_mask
from .diagnostics import Diagnostic, error

# Forma de la regla de bits no usados en el comentario de una hoja
PLACE_PATTERN = 0x88888888
PLACE_MARK = "+"
PLACE_GAP = "-"
PLACE_VARIABLE = "?"

NULL_CODE = "NULL"

@dataclass(frozen=True)
class EmitResult:
    lines: List[str]
    diagnostics: List[Diagnostic]
    dropped: int

    @property
    def text(self) -> str:
        return "".join(line + "\n" for line in self.lines)

# ---------------- Helpers de formato ----------------

def unmatched_ruler(inst: Instruction, w: int) -> str:
    """Una marca por bit de la palabra w: '?' sin discriminar, '+' cada nibble, '-' resto."""
    width = len(inst.words[w].description)
    residual = inst.unmatched[w]
    out = []
    for pos in range(width - 1, -1, -1):
        look = 1 << pos
        if residual & look:
            out.append(PLACE_VARIABLE)
        else:
            out.append(PLACE_MARK if look & PLACE_PATTERN else PLACE_GAP)
    return "".join(out)

def code_columns(ctx: CompilationContext, name: Optional[str]) -> List[str]:
    """Valores de las columnas de función: una por formato F (o el nombre tal cual)."""
    if name is None:
        return [NULL_CODE] * max(1, len(ctx.formats))
    if not ctx.formats:
        return [name]
    return [f.apply(name) for f in ctx.formats]

def banner(ctx: CompilationContext, title: str) -> List[str]:
    co, cc = ctx.comment_open, ctx.comment_close
    rule = "=" * len(title)
    if cc:
        return [co, f"\t{title}", f"\t{rule}", cc]
    return [co, f"{co}\t{title}", f"{co}\t{rule}", co]

# ---------------- Filas ----------------

def render_row(ctx: CompilationContext, row: Row, sep: str) -> str:
    """Una fila del inicializador, con su comentario, en el lenguaje del contexto."""
    co, cc = ctx.comment_open, ctx.comment_close
    head = "\t{ "
    if ctx.max_words > 1:
        head += f"{row.word_index if isinstance(row, BranchRow) else 0}, "

    if isinstance(row, BranchRow):
        cols = [to_hex_mask(row.mask, ctx.bits), str(row.jump)] + [NULL_CODE] * max(1, len(ctx.formats))
        note = f"{co} [{row.index:3d}]"
    elif row.instruction is None:
        cols = ["0", "0"] + code_columns(ctx, ctx.error_handler)
        note = f"{co} [{row.index:3d}]\tInvalid Instruction"
    else:
        inst = row.instruction
        cols = ["0", "0"] + code_columns(ctx, inst.name)
        note = f"{co} [{row.index:3d}]{inst.line:3d}"
        note += "".join(f"\t{d}" for d in inst.descriptions)
        if inst.duplicate_count > 1:
            rulers = " ".join(unmatched_ruler(inst, w) for w in range(len(inst.words)))
            note += f" [{inst.duplicate_count} {rulers}]"
        if inst.comment.strip():
            note += f" {inst.comment.strip()}"
    if cc:
        note += f" {cc}"
    return f"{head}{', '.join(cols)} }}{sep}\t{note}"

def emit_table(ctx: CompilationContext, tree: DecisionNode, table_size: int) -> EmitResult:
    """Genera la declaración completa de la tabla a partir del árbol ya numerado."""
    diags: List[Diagnostic] = []
    dropped = 0
    rows = build_table(tree)

    lines = banner(ctx, "Start Of Table")
    lines.append(f"{ctx.table_scope} {ctx.table_type} {ctx.table_name}[ {table_size} ] = {{")
    for i, row in enumerate(rows):
        if isinstance(row, BranchRow) and row.word_index >= ctx.max_words:
            diags.append(error(f"Se excede el número máximo de palabras en el índice {row.index} de la tabla",
                               hint=f"la decisión usa la palabra {row.word_index}; declare {{W {row.word_index + 1}}}"))
            dropped += 1
        sep = "," if i < len(rows) - 1 else " "
        lines.append(render_row(ctx, row, sep))
    lines.append("};")
    lines.append("")
    lines.extend(banner(ctx, "End Of Table"))
    return EmitResult(lines=lines, diagnostics=diags, dropped=dropped)

def render_table(ctx: CompilationContext, tree: DecisionNode, table_size: int) -> str:
    return emit_table(ctx, tree, table_size).text
