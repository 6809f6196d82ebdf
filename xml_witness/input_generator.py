"""
Generación de inputs del circuito a partir de un XML firmado

Pipeline (todas las fallas son fatales):
1. Validar parámetros (nullifierSeed antes de cualquier parseo)
2. Extraer firma, payload firmado y SignedInfo
3. Padding SHA-256 + precompute hasta <CertificateData>
4. Verificación local: DigestValue en SignedInfo y RSA
5. Offsets (ancla, tipo de documento, ventana de reveal)
6. Empaquetar en el esquema fijo de inputs del circuito
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .binary_format import big_int_to_chunked_bytes, bytes_to_char_array
from .config import (
    CIRCOM_FIELD_P,
    DEFAULT_ANCHOR_SELECTOR,
    DEFAULT_MAX_INPUT_LENGTH,
    DEFAULT_RSA_KEY_BITS_PER_CHUNK,
    DEFAULT_RSA_KEY_NUM_CHUNKS,
    WitnessConfig,
)
from .crypto_engine import CryptoEngine, get_crypto_engine
from .exceptions import CapacityError, InvalidParamsError, NullifierSeedError
from .offsets import resolve_offsets
from .pipeline_logger import get_logger
from .rsa_verifier import find_data_hash_index, verify_rsa_sha1
from .sha_utils import generate_partial_sha, sha256_pad, sha256_resume
from .xml_signature import extract_signature_parts

pipeline = get_logger("pipeline")


@dataclass(frozen=True)
class InputGenerationParams:
    nullifier_seed: int
    reveal_start: Optional[str] = None
    reveal_end: Optional[str] = None
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH
    rsa_key_bits_per_chunk: int = DEFAULT_RSA_KEY_BITS_PER_CHUNK
    rsa_key_num_chunks: int = DEFAULT_RSA_KEY_NUM_CHUNKS
    anchor_selector: str = field(default=DEFAULT_ANCHOR_SELECTOR, repr=False)

    @classmethod
    def from_config(cls, config: WitnessConfig, nullifier_seed: int, **overrides) -> "InputGenerationParams":
        """Completa los defaults desde WitnessConfig; overrides en None se ignoran"""
        values = {
            "max_input_length": config.max_input_length,
            "rsa_key_bits_per_chunk": config.rsa_key_bits_per_chunk,
            "rsa_key_num_chunks": config.rsa_key_num_chunks,
            "anchor_selector": config.anchor_selector,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(nullifier_seed=nullifier_seed, **values)

    @property
    def rsa_key_capacity_bits(self) -> int:
        return self.rsa_key_bits_per_chunk * self.rsa_key_num_chunks

    def validate(self) -> None:
        """
        Valida los parámetros antes de tocar el XML.

        Raises:
            NullifierSeedError: seed no entero, negativo o >= módulo del campo
            InvalidParamsError: capacidad o limbs inválidos
        """
        seed = self.nullifier_seed
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise NullifierSeedError(f"nullifierSeed debe ser un entero, llegó {type(seed).__name__}")
        if seed < 0:
            raise NullifierSeedError("nullifierSeed no puede ser negativo")
        if seed >= CIRCOM_FIELD_P:
            raise NullifierSeedError()

        if self.max_input_length <= 0 or self.max_input_length % 64 != 0:
            raise InvalidParamsError(
                f"maxInputLength debe ser un múltiplo positivo de 64. Actual: {self.max_input_length}"
            )
        if self.rsa_key_bits_per_chunk <= 0 or self.rsa_key_num_chunks <= 0:
            raise InvalidParamsError(
                "rsaKeyBitsPerChunk y rsaKeyNumChunks deben ser positivos. "
                f"Actual: {self.rsa_key_bits_per_chunk}x{self.rsa_key_num_chunks}"
            )
        if not self.anchor_selector:
            raise InvalidParamsError("anchor_selector no puede estar vacío")


@dataclass(frozen=True)
class CircuitInputs:
    """Witness final. Los nombres de to_dict() son el contrato con el circuito."""

    data_padded: Tuple[str, ...]
    data_padded_length: int
    signed_info: Tuple[str, ...]
    precomputed_sha: Tuple[str, ...]
    data_hash_index: int
    certificate_data_node_index: int
    document_type_length: int
    signature: Tuple[str, ...]
    pub_key: Tuple[str, ...]
    is_reveal_enabled: int
    reveal_start_index: int
    reveal_end_index: int
    nullifier_seed: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dataPadded": list(self.data_padded),
            "dataPaddedLength": self.data_padded_length,
            "signedInfo": list(self.signed_info),
            "precomputedSHA": list(self.precomputed_sha),
            "dataHashIndex": self.data_hash_index,
            "certificateDataNodeIndex": self.certificate_data_node_index,
            "documentTypeLength": self.document_type_length,
            "signature": list(self.signature),
            "pubKey": list(self.pub_key),
            "isRevealEnabled": self.is_reveal_enabled,
            "revealStartIndex": self.reveal_start_index,
            "revealEndIndex": self.reveal_end_index,
            "nullifierSeed": self.nullifier_seed,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def resume_digest(self) -> bytes:
        """Reanuda precomputedSHA sobre dataPadded[:dataPaddedLength], como el circuito"""
        remaining = bytes(int(c) for c in self.data_padded[:self.data_padded_length])
        return sha256_resume(bytes(int(c) for c in self.precomputed_sha), remaining)


def generate_input(
    xml: Union[str, bytes],
    params: InputGenerationParams,
    engine: Optional[CryptoEngine] = None,
) -> CircuitInputs:
    """
    Convierte un XML firmado en los inputs del circuito.

    Args:
        xml: Documento con exactamente una ds:Signature y un ds:Reference
        params: Parámetros de generación
        engine: Motor criptográfico; si es None se usa el del proceso

    Returns:
        CircuitInputs

    Raises:
        WitnessError: Cualquier falla aborta la generación
    """
    params.validate()
    if engine is None:
        engine = get_crypto_engine()

    with pipeline.log_context("generate_input", max_input_length=params.max_input_length):
        with pipeline.log_context("extract_signature"):
            parts = extract_signature_parts(xml, engine)

        public_key = parts.public_key
        signature_int = parts.signature_int
        if public_key.key_size > params.rsa_key_capacity_bits:
            raise CapacityError(
                f"Módulo RSA de {public_key.key_size} bits no entra en "
                f"{params.rsa_key_num_chunks}x{params.rsa_key_bits_per_chunk} bits"
            )

        # Precompute SHA-256 del payload hasta el nodo ancla
        with pipeline.log_context("precompute_sha", signed_data_length=len(parts.signed_data)):
            signed_data = parts.signed_data
            body_sha_length = ((len(signed_data) + 63 + 65) // 64) * 64
            data_padded, data_padded_length = sha256_pad(
                signed_data, max(params.max_input_length, body_sha_length)
            )
            partial = generate_partial_sha(
                body=data_padded,
                body_length=data_padded_length,
                selector=params.anchor_selector,
                max_remaining_body_length=params.max_input_length,
            )

        # ----- Verificación local
        with pipeline.log_context("local_verification"):
            data_hash_index = find_data_hash_index(signed_data, parts.signed_info)
            verify_rsa_sha1(parts.signed_info, signature_int, public_key)
        # ----- Fin verificación local

        with pipeline.log_context("resolve_offsets"):
            offsets = resolve_offsets(
                partial.body_remaining,
                params.anchor_selector,
                params.reveal_start,
                params.reveal_end,
            )

        inputs = CircuitInputs(
            data_padded=tuple(bytes_to_char_array(partial.body_remaining)),
            data_padded_length=partial.body_remaining_length,
            signed_info=tuple(bytes_to_char_array(parts.signed_info)),
            precomputed_sha=tuple(bytes_to_char_array(partial.precomputed_sha)),
            data_hash_index=data_hash_index,
            certificate_data_node_index=offsets.certificate_data_node_index,
            document_type_length=offsets.document_type_length,
            signature=tuple(big_int_to_chunked_bytes(
                signature_int, params.rsa_key_bits_per_chunk, params.rsa_key_num_chunks
            )),
            pub_key=tuple(big_int_to_chunked_bytes(
                public_key.n, params.rsa_key_bits_per_chunk, params.rsa_key_num_chunks
            )),
            is_reveal_enabled=offsets.is_reveal_enabled,
            reveal_start_index=offsets.reveal_start_index,
            reveal_end_index=offsets.reveal_end_index,
            nullifier_seed=str(params.nullifier_seed),
        )

        pipeline.log_metrics({
            "signed_data_length": len(signed_data),
            "signed_info_length": len(parts.signed_info),
            "data_padded_length": inputs.data_padded_length,
            "precomputed_blocks": (data_padded_length - inputs.data_padded_length) // 64,
            "is_reveal_enabled": inputs.is_reveal_enabled,
            "signature_method": parts.signature_method,
            "digest_method": parts.digest_method,
            "canonicalization_method": parts.canonicalization_method,
        })
        return inputs
