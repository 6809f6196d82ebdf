"""
Offsets que el circuito recibe como índices planos

El circuito no puede parsear XML ni buscar strings, así que acá se resuelven
por búsqueda literal de bytes sobre el buffer restante (post-split):
- certificateDataNodeIndex: posición del '<' del ancla
- documentTypeLength: largo del tag hijo inmediato del ancla
- revealStartIndex / revealEndIndex: ventana de divulgación, relativa al ancla
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .exceptions import AnchorNotFoundError, RevealEndNotFoundError, RevealStartNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentOffsets:
    certificate_data_node_index: int
    document_type_length: int
    is_reveal_enabled: int
    reveal_start_index: int
    reveal_end_index: int


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def find_document_type_length(buffer: bytes, anchor_index: int, anchor_length: int) -> int:
    """
    Largo del token que sigue a '<ancla><', hasta el primer ' ' o '>'.

    Ej: '<CertificateData><PAN num="X">' -> len('PAN')
    """
    # +1 salta el '<' del primer hijo
    start = anchor_index + anchor_length + 1
    candidates = [
        idx for idx in (buffer.find(b" ", start), buffer.find(b">", start))
        if idx >= start
    ]
    if not candidates:
        raise AnchorNotFoundError(
            f"Tag del tipo de documento sin terminar después de la posición {start}"
        )
    return min(candidates) - start


def resolve_offsets(
    buffer: bytes,
    anchor: Union[str, bytes],
    reveal_start: Optional[str] = None,
    reveal_end: Optional[str] = None,
) -> DocumentOffsets:
    """
    Resuelve los offsets sobre el buffer restante.

    Args:
        buffer: body_remaining del split SHA
        anchor: Tag literal del ancla (ej: '<CertificateData>')
        reveal_start: Marcador de inicio de la ventana (opcional)
        reveal_end: Marcador de fin de la ventana (opcional)

    Raises:
        AnchorNotFoundError, RevealStartNotFoundError, RevealEndNotFoundError
    """
    anchor_bytes = _to_bytes(anchor)
    anchor_index = buffer.find(anchor_bytes)
    if anchor_index == -1:
        raise AnchorNotFoundError(
            f"{anchor_bytes.decode('utf-8', 'replace')} not found in signed data"
        )

    document_type_length = find_document_type_length(buffer, anchor_index, len(anchor_bytes))

    reveal_start_index = 0
    reveal_end_index = 0
    # Se deriva de los parámetros, no de si la búsqueda encuentra algo
    is_reveal_enabled = 1 if reveal_start and reveal_end else 0

    if is_reveal_enabled:
        start_bytes = _to_bytes(reveal_start)
        end_bytes = _to_bytes(reveal_end)

        start_abs = buffer.find(start_bytes, anchor_index)
        if start_abs == -1:
            raise RevealStartNotFoundError()
        reveal_start_index = start_abs - anchor_index

        end_abs = buffer.find(end_bytes, start_abs + len(start_bytes) + 1)
        if end_abs == -1:
            raise RevealEndNotFoundError()
        reveal_end_index = end_abs - anchor_index

        logger.debug(f"Ventana de reveal: [{reveal_start_index}, {reveal_end_index}] desde el ancla")

    return DocumentOffsets(
        certificate_data_node_index=anchor_index,
        document_type_length=document_type_length,
        is_reveal_enabled=is_reveal_enabled,
        reveal_start_index=reveal_start_index,
        reveal_end_index=reveal_end_index,
    )
