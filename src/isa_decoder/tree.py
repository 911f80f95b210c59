'''
síntesis del árbol de decisión binario (un bit por nodo)
'''

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .model import CompilationContext, Instruction, Leaf, Branch, DecisionNode
from .utils import MAX_CODES, bit, bits_msb_first, popcount, word_mask
from .diagnostics import Diagnostic, error

# ---------------- Resultado de la síntesis ----------------

@dataclass(frozen=True)
class SynthesisResult:
    tree: DecisionNode
    diagnostics: List[Diagnostic]
    dropped: int

# ---------------- Helpers ----------------

def residual_bits(mask_state: Sequence[int], inst: Instruction) -> List[int]:
    """Bits de la máscara de la instrucción que aún no se han usado como discriminante."""
    return [mask_state[w] & inst.mask(w) for w in range(MAX_CODES)]

def choose_split(mask_state: Sequence[int], insts: Sequence[Instruction],
                 word_size: int) -> Optional[Tuple[int, int]]:
    """Elige (palabra, bit) que mejor divide la lista, o None si ninguno sirve.

    Un candidato es válido si todas las instrucciones fijan ese bit y hay
    instrucciones en ambos lados. Gana el de menor |c1 - c0|; en empate,
    el primero en orden palabra ascendente, bit de MSB a LSB.
    """
    count = len(insts)
    best: Optional[Tuple[int, int]] = None
    best_diff = 0
    for w in range(MAX_CODES):
        # Sólo los bits disponibles que fijan todas las instrucciones
        common = mask_state[w]
        for inst in insts:
            if not common:
                break
            common &= inst.mask(w)
        if not common:
            continue
        ones = [0] * word_size
        for inst in insts:
            v = inst.opcode(w) & common
            while v:
                low = v & -v
                ones[low.bit_length() - 1] += 1
                v ^= low
        for b in bits_msb_first(word_size):
            if not (common >> b) & 1:
                continue
            c1 = ones[b]
            c0 = count - c1
            # Un bit común a todas no discrimina: sólo añadiría hojas ilegales
            if c0 == 0 or c1 == 0:
                continue
            diff = abs(c1 - c0)
            if best is None or diff < best_diff:
                best, best_diff = (w, b), diff
    return best

def partition(insts: Sequence[Instruction], w: int, b: int) -> Tuple[List[Instruction], List[Instruction]]:
    """División estable en (zeros, ones) según el bit b de la palabra w del opcode."""
    zeros: List[Instruction] = []
    ones: List[Instruction] = []
    for inst in insts:
        (ones if bit(inst.opcode(w), b) else zeros).append(inst)
    return zeros, ones

# ---------------- Sintetizador ----------------

class _Synthesizer:
    def __init__(self, ctx: CompilationContext, filename: Optional[str] = None):
        self.filename = filename
        self.word_size = ctx.bits
        self.error_handler = ctx.error_handler
        self.mask_state = [word_mask(self.word_size) if self.word_size else 0] * MAX_CODES
        self.diags: List[Diagnostic] = []
        self.dropped = 0

    def build(self, insts: List[Instruction]) -> DecisionNode:
        """Construye el árbol en preorden (rama cero antes que rama uno) con una
        pila explícita; la profundidad llega a word_size * MAX_CODES niveles."""
        root: List[DecisionNode] = [Leaf()]
        # Tareas: ("build", lista, nodo padre o None, lado) o ("restore", w, bit)
        stack: List[tuple] = [("build", insts, None, "")]
        while stack:
            task = stack.pop()
            if task[0] == "restore":
                # El bit deja de estar disponible sólo dentro de su subárbol
                _, w, t = task
                self.mask_state[w] |= t
                continue
            _, group, parent, side = task
            node, split = self._node(group)
            if parent is None:
                root[0] = node
            else:
                setattr(parent, side, node)
            if split is None:
                continue
            w, b = split
            zeros, ones = partition(group, w, b)
            t = 1 << b
            self.mask_state[w] &= ~t
            stack.append(("restore", w, t))
            stack.append(("build", ones, node, "one"))
            stack.append(("build", zeros, node, "zero"))
        return root[0]

    def _node(self, insts: List[Instruction]) -> Tuple[DecisionNode, Optional[Tuple[int, int]]]:
        """Nodo para una lista: hoja terminada, o rama (con hijos pendientes) y su bit."""
        if not insts:
            self.diags.append(error("El árbol de decodificación contiene una hoja vacía", file=self.filename))
            self.dropped += 1
            return Leaf(), None
        if len(insts) == 1:
            return self._single(insts[0]), None

        split = choose_split(self.mask_state, insts, self.word_size)
        if split is None:
            # No hay forma de diferenciar las instrucciones de la lista
            for inst in insts:
                self.diags.append(error(f"Instrucción duplicada '{inst.name}'", line=inst.line, file=self.filename))
                self.dropped += 1
            return Leaf(), None
        w, b = split
        return Branch(word_index=w, bit_index=b, zero=Leaf(), one=Leaf()), split

    def _single(self, inst: Instruction) -> DecisionNode:
        inst.unmatched = residual_bits(self.mask_state, inst)
        count = sum(popcount(u) for u in inst.unmatched)
        if count == 0:
            inst.duplicate_count = 0
            return Leaf(inst)
        if self.error_handler is None:
            # Alcanzable a través de 2^count opcodes alternativos
            inst.duplicate_count = 1 << count
            return Leaf(inst)

        # Con rutina de error: una decisión por cada bit residual (palabra
        # ascendente, MSB primero); el otro lado de cada una es una hoja ilegal.
        # Se construye la cadena de abajo arriba.
        chain = [(w, b) for w, residual in enumerate(inst.unmatched)
                 for b in bits_msb_first(self.word_size) if (residual >> b) & 1]
        inst.unmatched = [0] * MAX_CODES
        inst.duplicate_count = 0
        node: DecisionNode = Leaf(inst)
        for w, b in reversed(chain):
            if bit(inst.opcode(w), b):
                node = Branch(word_index=w, bit_index=b, zero=Leaf(), one=node)
            else:
                node = Branch(word_index=w, bit_index=b, zero=node, one=Leaf())
        return node

def synthesize(ctx: CompilationContext, instructions: Optional[Sequence[Instruction]] = None, *,
               filename: Optional[str] = None) -> SynthesisResult:
    """Construye el árbol de decisión para las instrucciones del contexto (o las dadas)."""
    insts = list(ctx.instructions if instructions is None else instructions)
    syn = _Synthesizer(ctx, filename)
    tree = syn.build(insts)
    return SynthesisResult(tree=tree, diagnostics=syn.diags, dropped=syn.dropped)
