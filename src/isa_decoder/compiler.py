from __future__ import annotations
import argparse, io, sys
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, TextIO

from .lexer import BLOCK_CLOSE, block_command, find_record
from .model import CompilationContext, DecisionNode, Row
from .records import process_record
from .router import BLOCK_MODES, OutputRouter
from .tree import synthesize
from .sequencer import build_table, sequence
from .emitter import emit_table
from .writers import base_name as input_base_name, open_output, output_paths
from .diagnostics import Diagnostic, FatalError, error, fatal

@dataclass
class CompileResult:
    """Resultado de una ejecución completa (sin errores fatales)."""
    context: CompilationContext
    tree: DecisionNode
    table_size: int
    rows: List[Row]
    output: str                       # texto enviado a la consola
    diagnostics: List[Diagnostic]
    dropped: int
    files: List[str] = field(default_factory=list)

    @property
    def status(self) -> int:
        return 1 if self.dropped > 0 else 0

def compile_lines(lines: Iterable[str], *, filename: str = "stdin", base: Optional[str] = None,
                  strict: bool = False, opener: Callable[[str], TextIO] = open_output) -> CompileResult:
    """Lee los registros, sintetiza el árbol, lo numera y emite la tabla.

    Si 'base' no es None, el registro {L ...} abre base.h y base.c/.cpp con
    'opener' y la salida posterior va a esos ficheros; si no, todo queda en
    CompileResult.output. Los errores de entrada lanzan FatalError.
    """
    ctx = CompilationContext(strict=strict)
    console = io.StringIO()
    router = OutputRouter(console, filename)
    diags: List[Diagnostic] = []
    files: List[str] = []

    with ExitStack() as stack:
        lineno = 0
        for lineno, raw in enumerate(lines, start=1):
            line = raw.rstrip("\r\n")

            # 1) Comandos de bloque: se procesan en cualquier modo
            try:
                cmd = block_command(line)
            except ValueError as ex:
                raise fatal(str(ex), line=lineno, file=filename) from ex
            if cmd is not None:
                if cmd == BLOCK_CLOSE:
                    if not router.pop():
                        raise fatal("fin de bloque sin el inicio correspondiente", line=lineno, file=filename)
                else:
                    router.push(BLOCK_MODES[cmd], lineno)
                router.reset_target()
                continue

            # 2) Dentro de un bloque la línea entera se enruta tal cual
            if router.mode is not None:
                router.route_block_line(lineno, line)
                continue

            # 3) Modo línea: sólo cuenta lo que hay tras '{'
            rec = find_record(line)
            if rec is None:
                router.reset_target()
                continue
            body, tail = rec
            effect, rdiags = process_record(ctx, lineno, body, tail, filename=filename)
            diags.extend(rdiags)

            if effect.kind == "source":
                router.write_source(lineno, effect.text)
            elif effect.kind == "header":
                router.write_header(lineno, effect.text)
            elif effect.kind == "tail":
                router.defer(lineno, effect.text)
            else:
                router.reset_target()
                if effect.kind == "language" and base is not None:
                    header_path, source_path = output_paths(base, effect.language)
                    try:
                        header = stack.enter_context(opener(header_path))
                        source = stack.enter_context(opener(source_path))
                    except OSError as ex:
                        raise fatal(f"no se pudo abrir el fichero de salida: {ex}", line=lineno, file=filename) from ex
                    files.extend([header_path, source_path])
                    router.redirect(header, source)

        if router.blocks:
            opened = ", ".join(str(b.line) for b in router.blocks)
            raise fatal(f"bloque(s) sin terminar, abiertos en la(s) línea(s) {opened}", line=lineno, file=filename)

        # 4) Árbol, numeración y tabla
        syn = synthesize(ctx, filename=filename)
        table_size = sequence(syn.tree, 0)
        emitted = emit_table(ctx, syn.tree, table_size)
        router.write_table(emitted.lines)
        router.flush_deferred()

    diags.extend(syn.diagnostics)
    diags.extend(emitted.diagnostics)
    return CompileResult(
        context=ctx,
        tree=syn.tree,
        table_size=table_size,
        rows=build_table(syn.tree),
        output=console.getvalue(),
        diagnostics=diags,
        dropped=syn.dropped + emitted.dropped,
        files=files,
    )

def compile_text(text: str, *, filename: str = "stdin", base: Optional[str] = None,
                 strict: bool = False, opener: Callable[[str], TextIO] = open_output) -> CompileResult:
    return compile_lines(text.splitlines(), filename=filename, base=base, strict=strict, opener=opener)

def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Generador de tablas de decodificación de instrucciones")
    ap.add_argument("source", nargs="?", default="-",
                    help="fichero de definiciones (o '-' / ausente para stdin)")
    args = ap.parse_args(argv)

    try:
        if args.source == "-":
            text = sys.stdin.read()
            filename, base = "stdin", None
        else:
            # Bytes no UTF-8 (p. ej. en comentarios) se conservan tal cual
            with open(args.source, "r", encoding="utf-8", errors="surrogateescape") as f:
                text = f.read()
            filename, base = args.source, input_base_name(args.source)
    except (OSError, UnicodeDecodeError) as ex:
        print(f"ERROR: no pude leer {args.source}: {ex}", file=sys.stderr)
        return 1

    try:
        result = compile_text(text, filename=filename, base=base)
    except FatalError as ex:
        print(ex.diagnostic, file=sys.stderr)
        return 1

    try:
        sys.stdout.write(result.output)
    except UnicodeEncodeError:
        sys.stdout.flush()
        sys.stdout.buffer.write(result.output.encode("utf-8", "surrogateescape"))
    for d in result.diagnostics:
        print(d, file=sys.stderr)
    if result.dropped:
        print(error(f"{result.dropped} errores detectados en los datos de configuración"), file=sys.stderr)
    return result.status

if __name__ == "__main__":
    raise SystemExit(main())
