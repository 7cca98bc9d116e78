"""MD5 message digest computed incrementally."""

from __future__ import annotations

import struct
from collections.abc import Sequence

BLOCK_LENGTH = 64
DIGEST_LENGTH = 16
DIGEST_STRING_LENGTH = DIGEST_LENGTH * 2 + 1

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF

_INITIAL_STATE = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476)

_CONSTANTS = (
    0xD76AA478, 0xE8C7B756, 0x242070DB, 0xC1BDCEEE,
    0xF57C0FAF, 0x4787C62A, 0xA8304613, 0xFD469501,
    0x698098D8, 0x8B44F7AF, 0xFFFF5BB1, 0x895CD7BE,
    0x6B901122, 0xFD987193, 0xA679438E, 0x49B40821,
    0xF61E2562, 0xC040B340, 0x265E5A51, 0xE9B6C7AA,
    0xD62F105D, 0x02441453, 0xD8A1E681, 0xE7D3FBC8,
    0x21E1CDE6, 0xC33707D6, 0xF4D50D87, 0x455A14ED,
    0xA9E3E905, 0xFCEFA3F8, 0x676F02D9, 0x8D2A4C8A,
    0xFFFA3942, 0x8771F681, 0x6D9D6122, 0xFDE5380C,
    0xA4BEEA44, 0x4BDECFA9, 0xF6BB4B60, 0xBEBFBC70,
    0x289B7EC6, 0xEAA127FA, 0xD4EF3085, 0x04881D05,
    0xD9D4D039, 0xE6DB99E5, 0x1FA27CF8, 0xC4AC5665,
    0xF4292244, 0x432AFF97, 0xAB9423A7, 0xFC93A039,
    0x655B59C3, 0x8F0CCC92, 0xFFEFF47D, 0x85845DD1,
    0x6FA87E4F, 0xFE2CE6E0, 0xA3014314, 0x4E0811A1,
    0xF7537E82, 0xBD3AF235, 0x2AD7D2BB, 0xEB86D391,
)

_SHIFTS = (
    (7, 12, 17, 22),
    (5, 9, 14, 20),
    (4, 11, 16, 23),
    (6, 10, 15, 21),
)


def _f1(x: int, y: int, z: int) -> int:
    return z ^ (x & (y ^ z))


def _f2(x: int, y: int, z: int) -> int:
    return _f1(z, x, y)


def _f3(x: int, y: int, z: int) -> int:
    return x ^ y ^ z


def _f4(x: int, y: int, z: int) -> int:
    return y ^ (x | (~z & _MASK32))


_ROUNDS = (
    (_f1, lambda i: i),
    (_f2, lambda i: (1 + 5 * i) % 16),
    (_f3, lambda i: (5 + 3 * i) % 16),
    (_f4, lambda i: (7 * i) % 16),
)


def _rotl(value: int, shift: int) -> int:
    value &= _MASK32
    return ((value << shift) | (value >> (32 - shift))) & _MASK32


def md5_transform(state: Sequence[int], block: bytes) -> tuple[int, int, int, int]:
    """Mix one 64-byte block into a four-word state and return the new state."""
    if len(state) != 4:
        raise ValueError("MD5 state must hold exactly 4 words")
    if len(block) != BLOCK_LENGTH:
        raise ValueError(f"MD5 block must be exactly {BLOCK_LENGTH} bytes")

    words = struct.unpack("<16I", bytes(block))
    a, b, c, d = state
    step = 0
    for round_no, (func, index_of) in enumerate(_ROUNDS):
        shifts = _SHIFTS[round_no]
        for i in range(16):
            total = a + func(b, c, d) + words[index_of(i)] + _CONSTANTS[step]
            a, b, c, d = d, (b + _rotl(total, shifts[i % 4])) & _MASK32, b, c
            step += 1

    return (
        (state[0] + a) & _MASK32,
        (state[1] + b) & _MASK32,
        (state[2] + c) & _MASK32,
        (state[3] + d) & _MASK32,
    )


class MD5:
    """Incremental MD5 context."""

    def __init__(self, data: bytes = b"") -> None:
        self.state: tuple[int, int, int, int] = _INITIAL_STATE
        self.count = 0  # number of bits processed, modulo 2**64
        self._buffer = bytearray()
        if data:
            self.update(data)

    def copy(self) -> MD5:
        """Return an independent copy of this context."""
        other = MD5()
        other.state = self.state
        other.count = self.count
        other._buffer = bytearray(self._buffer)
        return other

    def update(self, data: bytes) -> MD5:
        """Feed more bytes into the context."""
        data = bytes(data)
        self.count = (self.count + (len(data) << 3)) & _MASK64
        self._buffer.extend(data)
        whole = len(self._buffer) - len(self._buffer) % BLOCK_LENGTH
        if whole:
            view = memoryview(self._buffer)
            for start in range(0, whole, BLOCK_LENGTH):
                self.state = md5_transform(self.state, view[start:start + BLOCK_LENGTH])
            view.release()
            del self._buffer[:whole]
        return self

    def pad(self) -> None:
        """Append the final padding and bit length, completing the last block."""
        count_bytes = struct.pack("<Q", self.count)
        padlen = BLOCK_LENGTH - ((self.count >> 3) & (BLOCK_LENGTH - 1))
        if padlen < 1 + 8:
            padlen += BLOCK_LENGTH
        self.update(b"\x80" + bytes(padlen - 9))
        self.update(count_bytes)

    def digest(self) -> bytes:
        """Return the 16-byte digest of everything fed so far."""
        finished = self.copy()
        finished.pad()
        return struct.pack("<4I", *finished.state)

    def hexdigest(self) -> str:
        """Return the digest as lower-case hexadecimal."""
        return self.digest().hex()