"""
Compact Base62 rendering of Discord snowflake IDs.

A snowflake such as "123456789012345678" becomes an 11 character string,
which keeps tokens short. Decoding accepts both forms.
"""

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_BASE = len(BASE62_ALPHABET)
_INDEX = {char: position for position, char in enumerate(BASE62_ALPHABET)}


def encode_id(snowflake) -> str:
    number = int(snowflake)
    if number < 0:
        raise ValueError("Snowflake IDs cannot be negative")
    encoded = ""
    while True:
        number, remainder = divmod(number, _BASE)
        encoded = BASE62_ALPHABET[remainder] + encoded
        if number == 0:
            return encoded


def decode_id(value: str) -> str:
    """
    Returns the decimal snowflake for a plain or Base62 encoded ID.

    Purely numeric input is taken as already decoded.
    """
    if value.isascii() and value.isdigit():
        return value
    number = 0
    for char in value:
        if char not in _INDEX:
            raise ValueError(f"Invalid character in encoded ID: {char!r}")
        number = number * _BASE + _INDEX[char]
    if number == 0:
        raise ValueError("Encoded ID decodes to zero")
    return str(number)
