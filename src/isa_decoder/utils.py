'''
bit-twiddling para el árbol de decisión (popcount, recorrido MSB, hex por tamaño de palabra)
'''

from __future__ import annotations
from typing import Iterator

# Ancho del entero de trabajo (los opcodes se tratan como u32)
WORD_BITS = 32

# Máscara para 32 bits sin signo
U32_MASK = 0xFFFFFFFF

# Número máximo de palabras que puede tener una instrucción
MAX_CODES = 16

def u32(x: int) -> int:
    """Fuerza el valor al rango de 32 bits sin signo."""
    return x & U32_MASK

def word_mask(bits: int) -> int:
    """Máscara con los 'bits' bits bajos a 1."""
    if bits <= 0:
        raise ValueError("bits debe ser positivo")
    return (1 << bits) - 1

def popcount(x: int) -> int:
    """Cuenta los bits a 1 de un valor sin signo."""
    return bin(x).count("1")

def bits_msb_first(bits: int) -> Iterator[int]:
    """Posiciones de bit desde la más significativa (bits-1) hasta 0."""
    return iter(range(bits - 1, -1, -1))

def bit(value: int, pos: int) -> int:
    """Devuelve 0 o 1 según el bit 'pos' de value."""
    return (value >> pos) & 1

def is_visible(ch: str) -> bool:
    """Carácter ASCII visible (mayor que espacio, menor que DEL)."""
    return " " < ch < "\x7f"

def is_opcode_char(ch: str) -> bool:
    """Carácter válido en un patrón de bits: '0', '1', '.' o una letra."""
    return ch in "01." or ("a" <= ch.lower() <= "z")

def strip_invisible(text: str) -> str:
    """Elimina todo carácter no visible (espacios, tabuladores, control)."""
    return "".join(ch for ch in text if is_visible(ch))

def to_hex_mask(x: int, word_size: int) -> str:
    """Hexadecimal en mayúsculas con 2/4/8 dígitos para palabras de 8/16/32 bits."""
    width = {8: 2, 16: 4, 32: 8}.get(word_size)
    if width is None:
        return f"0x{u32(x):X}"
    return f"0x{u32(x):0{width}X}"
