"""
Verificación local RSA-PKCS1v1.5/SHA-1 sobre SignedInfo

Re-chequeo independiente de cualquier librería XMLDSig antes de confiar en los
bytes que van al circuito: se reconstruye el bloque PKCS#1 v1.5 esperado y se
compara con signature^e mod n.
"""
import base64
import hashlib
import logging

from .exceptions import DataHashNotFoundError, RsaVerificationError
from .xml_signature import RsaPublicKey

logger = logging.getLogger(__name__)

# DigestInfo ASN.1 para SHA-1 (RFC 8017 §9.2, nota 1)
ASN1_PREFIX_SHA1 = bytes.fromhex("3021300906052b0e03021a05000414")


def build_pkcs1_v15_sha1_block(signed_info: bytes, block_length: int = 256) -> bytes:
    """
    Construye 0x00 0x01 || 0xFF*k || 0x00 || DigestInfo || SHA1(signed_info)

    Args:
        signed_info: Bytes canónicos de SignedInfo
        block_length: Largo del módulo en bytes (256 para RSA 2048)

    Returns:
        Bloque de block_length bytes
    """
    hash_with_prefix = ASN1_PREFIX_SHA1 + hashlib.sha1(signed_info).digest()
    # 3 bytes para 0x00, 0x01 y 0x00
    padding_length = block_length - len(hash_with_prefix) - 3
    if padding_length < 8:
        raise RsaVerificationError(
            f"Módulo demasiado corto para PKCS#1 v1.5: {block_length} bytes"
        )
    return b"\x00\x01" + b"\xff" * padding_length + b"\x00" + hash_with_prefix


def verify_rsa_sha1(signed_info: bytes, signature: int, public_key: RsaPublicKey) -> bool:
    """
    Verifica la firma RSA de SignedInfo sin librerías XMLDSig.

    Raises:
        RsaVerificationError: Si el bloque recuperado no coincide
    """
    padded = build_pkcs1_v15_sha1_block(signed_info, public_key.byte_length)
    expected = int.from_bytes(padded, byteorder="big")

    if signature >= public_key.n:
        raise RsaVerificationError("RSA verification failed: signature >= modulus")

    recovered = pow(signature, public_key.e, public_key.n)
    if recovered != expected:
        raise RsaVerificationError()

    logger.debug(f"RSA-SHA1 verificado localmente ({public_key.key_size} bits)")
    return True


def find_data_hash_index(signed_data: bytes, signed_info: bytes) -> int:
    """
    Ubica el DigestValue (base64 de SHA256(signed_data)) dentro de SignedInfo.

    Returns:
        Offset en bytes dentro de signed_info

    Raises:
        DataHashNotFoundError: Si el hash no aparece literalmente
    """
    data_hash = base64.b64encode(hashlib.sha256(signed_data).digest())
    index = signed_info.find(data_hash)
    if index == -1:
        raise DataHashNotFoundError()
    return index
