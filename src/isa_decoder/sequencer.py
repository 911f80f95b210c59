'''
numeración en preorden del árbol y tabla aplanada (filas con saltos relativos)
'''

from __future__ import annotations
from typing import Iterator, List, Sequence

from .model import Branch, BranchRow, DecisionNode, LeafRow, Row

def sequence(node: DecisionNode | None, index: int = 0) -> int:
    """Asigna índices en preorden (nodo, rama cero, rama uno).

    Devuelve el siguiente índice libre, que al llamarse con la raíz y 0 es
    el tamaño de la tabla. El salto de una fila de decisión es
    one.index - index, así que este orden ES la codificación.
    """
    if node is None:
        return index
    for n in walk(node):
        n.index = index
        index += 1
    return index

def walk(node: DecisionNode) -> Iterator[DecisionNode]:
    """Recorrido en preorden (el orden de las filas de la tabla), sin recursión."""
    stack: List[DecisionNode] = [node]
    while stack:
        n = stack.pop()
        yield n
        if isinstance(n, Branch):
            stack.append(n.one)
            stack.append(n.zero)

def build_table(tree: DecisionNode) -> List[Row]:
    """Aplana un árbol ya numerado en filas, en orden de índice."""
    rows: List[Row] = []
    for n in walk(tree):
        if isinstance(n, Branch):
            rows.append(BranchRow(index=n.index, word_index=n.word_index,
                                  mask=n.test_mask, jump=n.one.index - n.index))
        else:
            rows.append(LeafRow(index=n.index, instruction=n.decoded))
    return rows

def lookup(rows: Sequence[Row], words: Sequence[int]) -> LeafRow:
    """Bucle de decodificación en tiempo de ejecución sobre la tabla aplanada.

        while (test = p->mask) p += (word[p->w] & test) ? p->jump : 1;
    """
    i = 0
    while True:
        row = rows[i]
        if isinstance(row, LeafRow):
            return row
        value = words[row.word_index] if row.word_index < len(words) else 0
        i += row.jump if value & row.mask else 1
