"""
SHA-256 con estado intermedio expuesto

hashlib no expone el estado de encadenamiento, así que la función de compresión
se implementa acá para poder:
1. Precalcular el hash de todo lo anterior al ancla (precomputedSHA)
2. Reanudar el hash sobre el resto, como lo hace el circuito
"""
import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

from .exceptions import AnchorNotFoundError, CapacityError

logger = logging.getLogger(__name__)

BLOCK_SIZE = 64

# SHA-256 constants (first 32 bits of fractional parts of cube roots of first 64 primes)
SHA256_K = [
    0x428a2f98, 0x71374491, 0xb5c0fbcf, 0xe9b5dba5, 0x3956c25b, 0x59f111f1, 0x923f82a4, 0xab1c5ed5,
    0xd807aa98, 0x12835b01, 0x243185be, 0x550c7dc3, 0x72be5d74, 0x80deb1fe, 0x9bdc06a7, 0xc19bf174,
    0xe49b69c1, 0xefbe4786, 0x0fc19dc6, 0x240ca1cc, 0x2de92c6f, 0x4a7484aa, 0x5cb0a9dc, 0x76f988da,
    0x983e5152, 0xa831c66d, 0xb00327c8, 0xbf597fc7, 0xc6e00bf3, 0xd5a79147, 0x06ca6351, 0x14292967,
    0x27b70a85, 0x2e1b2138, 0x4d2c6dfc, 0x53380d13, 0x650a7354, 0x766a0abb, 0x81c2c92e, 0x92722c85,
    0xa2bfe8a1, 0xa81a664b, 0xc24b8b70, 0xc76c51a3, 0xd192e819, 0xd6990624, 0xf40e3585, 0x106aa070,
    0x19a4c116, 0x1e376c08, 0x2748774c, 0x34b0bcb5, 0x391c0cb3, 0x4ed8aa4a, 0x5b9cca4f, 0x682e6ff3,
    0x748f82ee, 0x78a5636f, 0x84c87814, 0x8cc70208, 0x90befffa, 0xa4506ceb, 0xbef9a3f7, 0xc67178f2,
]

# Initial hash values (first 32 bits of fractional parts of square roots of first 8 primes)
SHA256_H = [
    0x6a09e667, 0xbb67ae85, 0x3c6ef372, 0xa54ff53a,
    0x510e527f, 0x9b05688c, 0x1f83d9ab, 0x5be0cd19,
]


def right_rotate(value: int, amount: int) -> int:
    """Right rotate a 32-bit integer"""
    return ((value >> amount) | (value << (32 - amount))) & 0xFFFFFFFF


def _compress(h: List[int], chunk: bytes) -> List[int]:
    """Procesa un bloque de 64 bytes y devuelve el nuevo estado"""
    w = [int.from_bytes(chunk[i * 4:(i + 1) * 4], byteorder="big") for i in range(16)]
    for i in range(16, 64):
        s0 = right_rotate(w[i - 15], 7) ^ right_rotate(w[i - 15], 18) ^ (w[i - 15] >> 3)
        s1 = right_rotate(w[i - 2], 17) ^ right_rotate(w[i - 2], 19) ^ (w[i - 2] >> 10)
        w.append((w[i - 16] + s0 + w[i - 7] + s1) & 0xFFFFFFFF)

    a, b, c, d, e, f, g, h_var = h
    for i in range(64):
        S1 = right_rotate(e, 6) ^ right_rotate(e, 11) ^ right_rotate(e, 25)
        ch = (e & f) ^ ((e ^ 0xFFFFFFFF) & g)
        temp1 = (h_var + S1 + ch + SHA256_K[i] + w[i]) & 0xFFFFFFFF
        S0 = right_rotate(a, 2) ^ right_rotate(a, 13) ^ right_rotate(a, 22)
        maj = (a & b) ^ (a & c) ^ (b & c)
        temp2 = (S0 + maj) & 0xFFFFFFFF

        h_var = g
        g = f
        f = e
        e = (d + temp1) & 0xFFFFFFFF
        d = c
        c = b
        b = a
        a = (temp1 + temp2) & 0xFFFFFFFF

    return [(x + y) & 0xFFFFFFFF for x, y in zip(h, (a, b, c, d, e, f, g, h_var))]


def _state_to_bytes(h: List[int]) -> bytes:
    return b"".join(x.to_bytes(4, byteorder="big") for x in h)


def _state_from_bytes(state: bytes) -> List[int]:
    if len(state) != 32:
        raise ValueError(f"El estado SHA-256 debe tener 32 bytes, llegó {len(state)}")
    return [int.from_bytes(state[i:i + 4], byteorder="big") for i in range(0, 32, 4)]


def sha256_resume(state: bytes, data: bytes) -> bytes:
    """
    Reanuda la compresión desde un estado intermedio.

    Args:
        state: Estado de 32 bytes (palabras big-endian)
        data: Bloques completos (múltiplo de 64 bytes), padding incluido si corresponde

    Returns:
        Nuevo estado de 32 bytes. Si data termina con el padding SHA-256, es el digest.
    """
    if len(data) % BLOCK_SIZE != 0:
        raise ValueError(f"Los datos deben ser múltiplo de {BLOCK_SIZE} bytes, llegó {len(data)}")
    h = _state_from_bytes(state)
    for offset in range(0, len(data), BLOCK_SIZE):
        h = _compress(h, data[offset:offset + BLOCK_SIZE])
    return _state_to_bytes(h)


def partial_sha(data: bytes) -> bytes:
    """Estado SHA-256 luego de comprimir data (múltiplo de 64) desde el IV"""
    return sha256_resume(_state_to_bytes(SHA256_H), data)


def sha256_pad(message: bytes, max_sha_bytes: int) -> Tuple[bytes, int]:
    """
    Aplica el padding Merkle-Damgård y completa con ceros hasta max_sha_bytes.

    Returns:
        (buffer de max_sha_bytes bytes, largo del mensaje con padding)

    Raises:
        CapacityError: Si el mensaje con padding no entra en max_sha_bytes
    """
    msg_len_bits = len(message) * 8
    padded = bytearray(message)
    padded.append(0x80)
    while (len(padded) + 8) % BLOCK_SIZE != 0:
        padded.append(0)
    padded += msg_len_bits.to_bytes(8, byteorder="big")

    message_len = len(padded)
    if message_len > max_sha_bytes:
        raise CapacityError(
            f"Padded message is {message_len} bytes long but max is {max_sha_bytes}"
        )
    padded += b"\x00" * (max_sha_bytes - message_len)
    return bytes(padded), message_len


@dataclass(frozen=True)
class PartialShaResult:
    precomputed_sha: bytes
    body_remaining: bytes
    body_remaining_length: int

    def resume_digest(self) -> bytes:
        """Digest final reanudando desde precomputed_sha (lo que hace el circuito)"""
        return sha256_resume(
            self.precomputed_sha, self.body_remaining[:self.body_remaining_length]
        )


def generate_partial_sha(
    body: bytes,
    body_length: int,
    selector: Union[str, bytes],
    max_remaining_body_length: int,
) -> PartialShaResult:
    """
    Divide el hash en un estado precalculado y un resto acotado.

    El corte cae en el límite de bloque anterior a la primera aparición de
    selector, de modo que precomputed_sha es un estado de encadenamiento válido.

    Args:
        body: Buffer con padding SHA-256 (múltiplo de 64)
        body_length: Largo del mensaje con padding (sin el relleno de ceros extra)
        selector: Texto literal donde cortar
        max_remaining_body_length: Capacidad del circuito en bytes

    Raises:
        AnchorNotFoundError: Si selector no aparece en body
        CapacityError: Si el resto supera max_remaining_body_length
    """
    if len(body) % BLOCK_SIZE != 0:
        raise ValueError("Remaining body was not padded correctly with int64s")

    selector_bytes = selector.encode("utf-8") if isinstance(selector, str) else selector
    selector_index = body.find(selector_bytes)
    if selector_index == -1:
        raise AnchorNotFoundError(
            f"SHA precompute selector {selector_bytes.decode('utf-8', 'replace')!r} not found in the body"
        )

    sha_cutoff_index = (selector_index // BLOCK_SIZE) * BLOCK_SIZE
    body_remaining_length = body_length - sha_cutoff_index
    if body_remaining_length > max_remaining_body_length:
        raise CapacityError(
            f"Remaining body {body_remaining_length} after the selector is longer than max "
            f"({max_remaining_body_length})"
        )

    # Más allá de body_remaining_length solo hay ceros de relleno
    body_remaining = body[sha_cutoff_index:sha_cutoff_index + max_remaining_body_length]
    body_remaining = body_remaining.ljust(max_remaining_body_length, b"\x00")

    precomputed_sha = partial_sha(body[:sha_cutoff_index])
    logger.debug(
        f"Precompute SHA: corte en {sha_cutoff_index} "
        f"({sha_cutoff_index // BLOCK_SIZE} bloques), resto {body_remaining_length} bytes"
    )
    return PartialShaResult(
        precomputed_sha=precomputed_sha,
        body_remaining=body_remaining,
        body_remaining_length=body_remaining_length,
    )
