"""Room Codes: 5 uppercase letters sampled uniformly from A–Z."""

import random
import string

ROOM_CODE_ALPHABET = string.ascii_uppercase
ROOM_CODE_LENGTH = 5


def random_room_code(rng: random.Random | None = None) -> str:
    rng = rng or random.Random()
    return "".join(rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))  # nosec B311


def normalize_room_code(code: str) -> str | None:
    """Uppercase and validate a user-typed code. None if malformed."""
    code = (code or "").strip().upper()
    if len(code) != ROOM_CODE_LENGTH:
        return None
    if any(ch not in ROOM_CODE_ALPHABET for ch in code):
        return None
    return code
