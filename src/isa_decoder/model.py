'''
dataclases del modelo (Instruction, CompilationContext, nodos del árbol, filas de tabla)
'''

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .utils import MAX_CODES

# ---- Registros de entrada ----

@dataclass(frozen=True)
class OpcodeWord:
    """Una palabra del patrón de bits: bits fijos (opcode) y cuáles lo son (mask)."""
    opcode: int
    mask: int
    description: str    # token original, p.ej. '0101....'

@dataclass(eq=False)
class Instruction:
    """Instrucción capturada de un registro {I ...}.

    duplicate_count y unmatched se calculan al sintetizar el árbol:
      - duplicate_count: 0 si es decodificable de forma única, 2^k si quedan k bits
        de su máscara sin usar como discriminante (k opcodes alias).
      - unmatched: por palabra, bits de la máscara que nunca discriminaron.
    """
    line: int
    name: str
    comment: str = ""
    words: List[OpcodeWord] = field(default_factory=list)
    duplicate_count: int = 0
    unmatched: List[int] = field(default_factory=lambda: [0] * MAX_CODES)

    def mask(self, w: int) -> int:
        return self.words[w].mask if w < len(self.words) else 0

    def opcode(self, w: int) -> int:
        return self.words[w].opcode if w < len(self.words) else 0

    @property
    def descriptions(self) -> List[str]:
        return [wd.description for wd in self.words]

@dataclass(frozen=True)
class OutputFormat:
    """Formato de nombre de función: prefix + nombre + suffix."""
    prefix: str
    suffix: str = ""

    def apply(self, name: str) -> str:
        return f"{self.prefix}{name}{self.suffix}"

@dataclass(frozen=True)
class Language:
    """Lenguaje destino: delimitadores de comentario y extensión del fuente."""
    name: str
    comment_open: str
    comment_close: str
    source_ext: str

LANG_C = Language("C", "/*", "*/", ".c")
LANG_CPP = Language("C++", "//", "", ".cpp")

LANGUAGES = {
    "c": LANG_C,
    "c++": LANG_CPP,
    "cpp": LANG_CPP,
}

# Valores por defecto de la declaración de la tabla
DEFAULT_TYPE = "decoder_t"
DEFAULT_SCOPE = "static"
DEFAULT_NAME = "decoder"

@dataclass
class CompilationContext:
    """Estado de compilación de una ejecución (sustituye a las variables globales).

    Se construye registro a registro mientras se lee la entrada; después
    sólo se consulta (síntesis y emisión).
    """
    word_size: Optional[int] = None
    max_words: int = MAX_CODES
    max_words_set: bool = False
    formats: List[OutputFormat] = field(default_factory=list)
    language: Optional[Language] = None
    data_type: Optional[str] = None
    data_scope: Optional[str] = None
    data_name: Optional[str] = None
    error_handler: Optional[str] = None
    instructions: List[Instruction] = field(default_factory=list)
    strict: bool = False

    @property
    def comment_open(self) -> str:
        return (self.language or LANG_C).comment_open

    @property
    def comment_close(self) -> str:
        return (self.language or LANG_C).comment_close

    @property
    def table_type(self) -> str:
        return self.data_type or DEFAULT_TYPE

    @property
    def table_scope(self) -> str:
        return self.data_scope or DEFAULT_SCOPE

    @property
    def table_name(self) -> str:
        return self.data_name or DEFAULT_NAME

    @property
    def bits(self) -> int:
        return self.word_size or 0

# ---- Árbol de decisión ----

@dataclass(eq=False)
class Leaf:
    """Hoja: instrucción decodificada, o None para 'instrucción inválida'."""
    decoded: Optional[Instruction] = None
    index: int = 0

    @property
    def is_invalid(self) -> bool:
        return self.decoded is None

@dataclass(eq=False)
class Branch:
    """Nodo de decisión: prueba el bit 'bit_index' (LSB = 0) de la palabra 'word_index'."""
    word_index: int
    bit_index: int
    zero: 'DecisionNode'
    one: 'DecisionNode'
    index: int = 0

    @property
    def test_mask(self) -> int:
        return 1 << self.bit_index

DecisionNode = Union[Leaf, Branch]

# ---- Filas de la tabla aplanada ----

@dataclass(frozen=True)
class BranchRow:
    """Fila de decisión: si (palabra & mask) salta 'jump' filas, si no avanza una."""
    index: int
    word_index: int
    mask: int
    jump: int

@dataclass(frozen=True)
class LeafRow:
    """Fila terminal: instrucción (o None si es la rutina de error)."""
    index: int
    instruction: Optional[Instruction]

Row = Union[BranchRow, LeafRow]
