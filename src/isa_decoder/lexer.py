from __future__ import annotations
import re
from typing import List, Optional, Tuple

BEGIN_RECORD = "{"
END_RECORD = "}"
ESCAPE = "\\"
BLOCK_RECORD = "B"

# Modos de bloque: {BS, {BE, {BH, {BC ; '{B ' / '{B}' cierra
BLOCK_START = "S"
BLOCK_END = "E"
BLOCK_HEADER = "H"
BLOCK_COMMENT = "C"
BLOCK_CLOSE = ""

VISIBLE_RUN_RE = re.compile(r"[\x21-\x7e]+")

def find_record(line: str) -> Optional[Tuple[str, str]]:
    """Return (body, tail) of the record in 'line', or None if it has no '{'.

    body runs from after '{' to the first unescaped '}' (or end of line);
    '\\}' inside the body stands for a literal '}'. tail is whatever follows
    the closing brace ('' when the record is unterminated).
    """
    start = line.find(BEGIN_RECORD)
    if start < 0:
        return None
    rest = line[start + 1:]
    body: List[str] = []
    i = 0
    while i < len(rest):
        ch = rest[i]
        if ch == ESCAPE and rest[i + 1:i + 2] == END_RECORD:
            body.append(END_RECORD)
            i += 2
            continue
        if ch == END_RECORD:
            return "".join(body), rest[i + 1:]
        body.append(ch)
        i += 1
    return "".join(body), ""

def block_command(line: str) -> Optional[str]:
    """Return the block mode letter of a '{B?' line, BLOCK_CLOSE for a block end,
    or None when the line is not a block record. Raises ValueError on an
    unknown block letter."""
    start = line.find(BEGIN_RECORD)
    if start < 0 or line[start + 1:start + 2] != BLOCK_RECORD:
        return None
    mode = line[start + 2:start + 3]
    if mode in (BLOCK_START, BLOCK_END, BLOCK_HEADER, BLOCK_COMMENT):
        return mode
    if mode in (" ", "\t", END_RECORD):
        return BLOCK_CLOSE
    raise ValueError(f"registro de bloque inválido: '{line[start:start + 3]}'")

def split_tokens(text: str) -> List[str]:
    """Split on runs of non-visible characters (leading blanks are ignored)."""
    return VISIBLE_RUN_RE.findall(text)
