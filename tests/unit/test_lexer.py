import pytest
from src.isa_decoder.lexer import find_record, block_command, split_tokens, BLOCK_CLOSE

# --- find_record ---
@pytest.mark.parametrize("src, expected", [
    ("solo un comentario", None),
    ("", None),
    ("{Z 8}", ("Z 8", "")),
    ("{I 00000000 NOP} sin operación", ("I 00000000 NOP", " sin operación")),
    ("texto previo {I 0101.... ADD", ("I 0101.... ADD", "")),
    ("{ if (a) \\} b} cola", (" if (a) } b", " cola")),
    ("{", ("", "")),
    ("{}", ("", "")),
])
def test_find_record(src, expected):
    assert find_record(src) == expected

# --- block_command ---
@pytest.mark.parametrize("src, expected", [
    ("{BS}", "S"),
    ("{BE", "E"),
    ("  {BH cabecera", "H"),
    ("{BC}", "C"),
    ("{B}", BLOCK_CLOSE),
    ("{B fin", BLOCK_CLOSE),
    ("{I 00000000 NOP}", None),
    ("sin registro", None),
])
def test_block_command(src, expected):
    assert block_command(src) == expected

@pytest.mark.parametrize("src", ["{BX}", "{B"])
def test_block_command_invalid(src):
    with pytest.raises(ValueError):
        block_command(src)

# --- split_tokens ---
@pytest.mark.parametrize("src, expected", [
    ("  0101.... \t ADD ", ["0101....", "ADD"]),
    ("0000 1111 X", ["0000", "1111", "X"]),
    ("   ", []),
])
def test_split_tokens(src, expected):
    assert split_tokens(src) == expected
