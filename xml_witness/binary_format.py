"""
Codificación de bytes y enteros grandes al formato de input del circuito
"""
from typing import Iterable, List


def bytes_to_char_array(data: bytes) -> List[str]:
    """Cada byte como string decimal (formato de señales de circom)"""
    return [str(b) for b in data]


def big_int_to_chunked_bytes(num: int, bits_per_chunk: int, num_chunks: int) -> List[str]:
    """
    Parte num en num_chunks limbs de bits_per_chunk bits, orden little-endian.

    Los bits por encima de bits_per_chunk * num_chunks se descartan; el caller
    valida la capacidad antes.
    """
    if num < 0:
        raise ValueError("num debe ser no negativo")
    mask = (1 << bits_per_chunk) - 1
    return [str((num >> (i * bits_per_chunk)) & mask) for i in range(num_chunks)]


def chunked_bytes_to_big_int(chunks: Iterable, bits_per_chunk: int) -> int:
    """Inverso de big_int_to_chunked_bytes: sum(limb_i << (i * bits))"""
    result = 0
    for i, chunk in enumerate(chunks):
        result += int(chunk) << (i * bits_per_chunk)
    return result
