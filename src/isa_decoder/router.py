'''
enrutado de texto de paso: pila de bloques, flujos fuente/cabecera, cola final y marcas #line
'''

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TextIO, Tuple

from .lexer import BLOCK_START, BLOCK_END, BLOCK_HEADER, BLOCK_COMMENT

class BlockMode(Enum):
    START = "S"       # al principio del fuente
    END = "E"         # al final del fuente (tras la tabla)
    HEADER = "H"      # al fichero de cabecera
    COMMENT = "C"     # se descarta

BLOCK_MODES = {
    BLOCK_START: BlockMode.START,
    BLOCK_END: BlockMode.END,
    BLOCK_HEADER: BlockMode.HEADER,
    BLOCK_COMMENT: BlockMode.COMMENT,
}

@dataclass(frozen=True)
class OpenBlock:
    mode: BlockMode
    line: int

class OutputRouter:
    """Decide a qué flujo va cada línea de paso.

    'source' y 'header' pueden ser el mismo flujo (salida por consola).
    Cada vez que cambia el destino se escribe '#line N "fichero"' para que
    el compilador de C atribuya el texto a la línea original.
    """

    def __init__(self, console: TextIO, filename: str = "stdin"):
        self.filename = filename
        self.source: TextIO = console
        self.header: TextIO = console
        self.target: Optional[str] = None
        self.blocks: List[OpenBlock] = []
        self.deferred: List[Tuple[int, str]] = []

    # ---- destinos ----

    def redirect(self, header: TextIO, source: TextIO) -> None:
        self.header = header
        self.source = source
        self.target = None

    def reset_target(self) -> None:
        self.target = None

    def _marker(self, line: int) -> str:
        return f'#line {line} "{self.filename}"\n'

    def write_source(self, line: int, text: str) -> None:
        if self.target != "source":
            self.target = "source"
            self.source.write(self._marker(line))
        self.source.write(text + "\n")

    def write_header(self, line: int, text: str) -> None:
        if self.target != "header":
            self.target = "header"
            self.header.write(self._marker(line))
        self.header.write(text + "\n")

    def defer(self, line: int, text: str) -> None:
        """Guarda una línea para escribirla después de la tabla."""
        self.target = None
        self.deferred.append((line, text))

    def write_table(self, lines: List[str]) -> None:
        self.target = None
        for line in lines:
            self.source.write(line + "\n")

    def flush_deferred(self) -> None:
        """Escribe la cola final; sólo marca #line donde se rompe la continuidad."""
        expected = 0
        for line, text in self.deferred:
            if line > expected:
                self.source.write(self._marker(line))
            expected = line + 1
            self.source.write(text + "\n")
        self.deferred.clear()

    # ---- pila de bloques ----

    @property
    def mode(self) -> Optional[BlockMode]:
        return self.blocks[-1].mode if self.blocks else None

    def push(self, mode: BlockMode, line: int) -> None:
        self.blocks.append(OpenBlock(mode, line))

    def pop(self) -> bool:
        if not self.blocks:
            return False
        self.blocks.pop()
        return True

    def route_block_line(self, line: int, text: str) -> None:
        """Línea cruda dentro de un bloque: va según el modo del bloque más interno."""
        mode = self.mode
        if mode is BlockMode.START:
            self.write_source(line, text)
        elif mode is BlockMode.END:
            self.defer(line, text)
        elif mode is BlockMode.HEADER:
            self.write_header(line, text)
        else:
            self.reset_target()
