# src/isa_decoder/records.py
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

from .lexer import split_tokens
from .model import (
    CompilationContext, Instruction, OpcodeWord, OutputFormat, Language, LANGUAGES,
)
from .utils import MAX_CODES, WORD_BITS, is_opcode_char, strip_invisible
from .diagnostics import Diagnostic, fatal, warning

# Identificadores de registro (primer carácter tras '{')
SIZE_RECORD = "Z"
WORDS_RECORD = "W"
FORMAT_RECORD = "F"
TYPE_RECORD = "T"
SCOPE_RECORD = "S"
NAME_RECORD = "N"
LANGUAGE_RECORD = "L"
ERROR_RECORD = "E"
INSTRUCTION_RECORD = "I"
HEADER_RECORD = "H"
TAIL_RECORD = "_"

INSERT_HERE = "%"
ONE_BIT = "1"
ZERO_BIT = "0"

# Máximo de registros F (columnas de resultado por fila)
MAX_FORMATS = 8

COUNT_RE = re.compile(r"^\s*(\d+)\s*$")

EffectKind = Literal["config", "instruction", "source", "header", "tail", "language"]

@dataclass(frozen=True)
class RecordEffect:
    """Qué debe hacer el enrutador de salida con un registro ya procesado.

    - config / instruction: nada que escribir.
    - source / header / tail: 'text' va al fuente, a la cabecera o al final de la tabla.
    - language: se fijó el lenguaje; el enrutador puede abrir el par de ficheros.
    """
    kind: EffectKind
    text: str = ""
    language: Optional[Language] = None

def _parse_count(text: str, what: str, upper: int) -> int:
    m = COUNT_RE.match(text)
    if not m:
        raise ValueError(f"{what} inválido: '{text.strip()}'")
    n = int(m.group(1))
    if n <= 0 or n > upper:
        raise ValueError(f"{what} inválido {n} (rango 1..{upper})")
    return n

def _identifier(text: str, what: str) -> str:
    value = strip_invisible(text)
    if not value:
        raise ValueError(f"no se encontró {what}")
    return value

def parse_format(text: str) -> OutputFormat:
    """'F ffff[%ffff]' -> OutputFormat(prefix, suffix), sin espacios."""
    raw = _identifier(text, "formato de salida")
    if INSERT_HERE in raw:
        prefix, suffix = raw.split(INSERT_HERE, 1)
        return OutputFormat(prefix, suffix)
    return OutputFormat(raw)

def parse_pattern(token: str) -> OpcodeWord:
    """Construye opcode/mask recorriendo el patrón de izquierda a derecha.

    '1' y '0' son bits fijos (mask=1); cualquier otro carácter es argumento.
    """
    opcode = 0
    mask = 0
    for ch in token:
        opcode <<= 1
        mask <<= 1
        if ch == ONE_BIT:
            opcode |= 1
            mask |= 1
        elif ch == ZERO_BIT:
            mask |= 1
    return OpcodeWord(opcode=opcode, mask=mask, description=token)

def parse_instruction(text: str, *, line: int, comment: str, word_size: Optional[int]) -> Instruction:
    """Interpreta el cuerpo de un registro {I ...}: palabras de bits y nombre final."""
    tokens = split_tokens(text)
    inst = Instruction(line=line, name="", comment=comment)
    for pos, tok in enumerate(tokens):
        last = pos == len(tokens) - 1
        count = sum(1 for ch in tok if is_opcode_char(ch))
        if count == len(tok) and not last:
            if not word_size:
                raise ValueError("patrón de bits antes de definir el tamaño de palabra ({Z n})")
            if count != word_size:
                raise ValueError(f"patrón '{tok}' de {count} bits (el tamaño de palabra es {word_size})")
            if len(inst.words) >= MAX_CODES:
                raise ValueError(f"instrucción demasiado grande (máximo {MAX_CODES} palabras)")
            inst.words.append(parse_pattern(tok))
        else:
            if not last:
                raise ValueError(f"el nombre de instrucción '{tok}' no es la última palabra de la línea")
            inst.name = tok
    if not inst.name:
        raise ValueError("instrucción sin nombre")
    return inst

def process_record(ctx: CompilationContext, line: int, body: str, tail: str = "", *,
                   filename: Optional[str] = None) -> Tuple[RecordEffect, List[Diagnostic]]:
    """Procesa un registro (texto tras '{', sin la llave de cierre).

    Devuelve (efecto, diagnósticos no fatales). Los errores de entrada
    lanzan FatalError con la línea de origen.
    """
    diags: List[Diagnostic] = []
    tag, rest = body[:1], body[1:]

    def _reset(what: str, current: Optional[str]) -> None:
        # Campos de una sola escritura: aviso (o error fatal en modo estricto)
        if current is None:
            return
        if ctx.strict:
            raise ValueError(f"{what} ya definido")
        diags.append(warning(f"{what} ya definido; se sustituye '{current}'", line=line, file=filename))

    try:
        if tag == SIZE_RECORD:
            n = _parse_count(rest, "tamaño de palabra", WORD_BITS)
            if ctx.word_size is not None:
                raise ValueError("no se puede redefinir el tamaño de palabra")
            if ctx.instructions:
                raise ValueError("el tamaño de palabra debe definirse antes de la primera instrucción")
            ctx.word_size = n
            return RecordEffect("config"), diags

        if tag == WORDS_RECORD:
            n = _parse_count(rest, "número de palabras", MAX_CODES)
            if ctx.max_words_set:
                raise ValueError("no se puede redefinir el número de palabras")
            ctx.max_words = n
            ctx.max_words_set = True
            return RecordEffect("config"), diags

        if tag == FORMAT_RECORD:
            if len(ctx.formats) >= MAX_FORMATS:
                raise ValueError(f"demasiados formatos de salida (máximo {MAX_FORMATS})")
            ctx.formats.append(parse_format(rest))
            return RecordEffect("config"), diags

        if tag == LANGUAGE_RECORD:
            if ctx.language is not None:
                raise ValueError(f"lenguaje de salida ya definido ({ctx.language.name})")
            name = _identifier(rest, "lenguaje")
            lang = LANGUAGES.get(name.lower())
            if lang is None:
                raise ValueError(f"lenguaje no reconocido '{name}'")
            ctx.language = lang
            return RecordEffect("language", language=lang), diags

        if tag == TYPE_RECORD:
            value = _identifier(rest, "tipo de datos")
            _reset("tipo de datos", ctx.data_type)
            ctx.data_type = value
            return RecordEffect("config"), diags

        if tag == SCOPE_RECORD:
            value = _identifier(rest, "ámbito")
            _reset("ámbito", ctx.data_scope)
            ctx.data_scope = value
            return RecordEffect("config"), diags

        if tag == NAME_RECORD:
            value = _identifier(rest, "nombre de la tabla")
            _reset("nombre de la tabla", ctx.data_name)
            ctx.data_name = value
            return RecordEffect("config"), diags

        if tag == ERROR_RECORD:
            value = _identifier(rest, "rutina de error")
            _reset("rutina de error", ctx.error_handler)
            ctx.error_handler = value
            return RecordEffect("config"), diags

        if tag == INSTRUCTION_RECORD:
            inst = parse_instruction(rest, line=line, comment=tail, word_size=ctx.word_size)
            ctx.instructions.append(inst)
            return RecordEffect("instruction"), diags

        if tag in (" ", "\t"):
            return RecordEffect("source", text=rest), diags

        if tag == "":
            # '{' como último carácter de la línea: línea en blanco al fuente
            return RecordEffect("source"), diags

        if tag == TAIL_RECORD:
            return RecordEffect("tail", text=rest), diags

        if tag == HEADER_RECORD:
            return RecordEffect("header", text=rest), diags

        if tag.isprintable() and tag > " ":
            raise ValueError(f"identificador de registro inválido '{tag}'")
        raise ValueError(f"identificador de registro inválido (código ascii {ord(tag)})")
    except ValueError as ex:
        raise fatal(str(ex), line=line, file=filename) from ex
