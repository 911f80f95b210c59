from __future__ import annotations
import os
from typing import TextIO, Tuple

from .model import Language

HEADER_EXT = ".h"

def base_name(input_path: str) -> str:
    """Nombre base de salida: la ruta de entrada sin nada desde el primer '.' del nombre."""
    head, tail = os.path.split(input_path)
    stem = tail.split(".", 1)[0]
    return os.path.join(head, stem)

def output_paths(base: str, language: Language) -> Tuple[str, str]:
    """(cabecera, fuente) para el lenguaje dado: base.h y base.c / base.cpp."""
    return base + HEADER_EXT, base + language.source_ext

def open_output(path: str) -> TextIO:
    return open(path, "w", encoding="utf-8", errors="surrogateescape")
