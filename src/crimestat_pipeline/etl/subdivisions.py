import re

# 01-95 (no 20, Corsica is split), 2A, 2B, 971-976
SUBDIVISION_CODE_PATTERN = re.compile(r"^(0[1-9]|1[0-9]|[3-8][0-9]|2[1-9AB]|9[0-5]|97[1-6])$")

def normalize_subdivision_code(raw) -> str:
    """
    "1" -> "01", "2a" -> "2A", " 974 " -> "974". Anything else is returned stripped.
    """
    code = str(raw).strip().upper()
    if code.endswith(".0"):  # pandas float coercion, e.g. "1.0"
        code = code[:-2]
    if code.isdigit() and len(code) == 1:
        code = code.zfill(2)
    return code

def is_valid_subdivision_code(code: str) -> bool:
    return bool(SUBDIVISION_CODE_PATTERN.match(code))
