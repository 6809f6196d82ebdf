"""
Configuración para el generador de inputs del circuito
"""
import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Módulo primo del campo escalar BN254 (circom)
CIRCOM_FIELD_P = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Capacidad por defecto del circuito: 20 bloques SHA-256
DEFAULT_MAX_INPUT_LENGTH = 64 * 20
DEFAULT_RSA_KEY_BITS_PER_CHUNK = 121
DEFAULT_RSA_KEY_NUM_CHUNKS = 17

# Nodo donde se corta el precompute de SHA-256
DEFAULT_ANCHOR_SELECTOR = "<CertificateData>"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} debe ser un entero, llegó: {raw!r}")


class WitnessConfig:
    """Configuración del generador leída de variables de entorno (XML_WITNESS_*)"""

    ENV_PREFIX = "XML_WITNESS_"

    def __init__(
        self,
        max_input_length: Optional[int] = None,
        rsa_key_bits_per_chunk: Optional[int] = None,
        rsa_key_num_chunks: Optional[int] = None,
        anchor_selector: Optional[str] = None,
    ):
        """
        Inicializa la configuración

        Args:
            max_input_length: Capacidad en bytes del buffer del circuito (múltiplo de 64)
            rsa_key_bits_per_chunk: Bits por limb para firma y módulo
            rsa_key_num_chunks: Cantidad de limbs
            anchor_selector: Tag literal donde se divide el hash
        """
        p = self.ENV_PREFIX
        self.max_input_length = (
            max_input_length
            if max_input_length is not None
            else _env_int(f"{p}MAX_INPUT_LENGTH", DEFAULT_MAX_INPUT_LENGTH)
        )
        self.rsa_key_bits_per_chunk = (
            rsa_key_bits_per_chunk
            if rsa_key_bits_per_chunk is not None
            else _env_int(f"{p}RSA_KEY_BITS_PER_CHUNK", DEFAULT_RSA_KEY_BITS_PER_CHUNK)
        )
        self.rsa_key_num_chunks = (
            rsa_key_num_chunks
            if rsa_key_num_chunks is not None
            else _env_int(f"{p}RSA_KEY_NUM_CHUNKS", DEFAULT_RSA_KEY_NUM_CHUNKS)
        )
        self.anchor_selector = anchor_selector or os.getenv(
            f"{p}ANCHOR_SELECTOR", DEFAULT_ANCHOR_SELECTOR
        )

        # Logging
        self.log_level = os.getenv(f"{p}LOG_LEVEL", "INFO").upper()
        log_dir = os.getenv(f"{p}LOG_DIR")
        self.log_dir = Path(log_dir) if log_dir else None

        self.validate()

    def validate(self) -> None:
        """Valida que la capacidad sea coherente con bloques SHA-256"""
        if self.max_input_length <= 0 or self.max_input_length % 64 != 0:
            raise ValueError(
                f"max_input_length debe ser un múltiplo positivo de 64. Actual: {self.max_input_length}"
            )
        if self.rsa_key_bits_per_chunk <= 0 or self.rsa_key_num_chunks <= 0:
            raise ValueError(
                "rsa_key_bits_per_chunk y rsa_key_num_chunks deben ser positivos. "
                f"Actual: {self.rsa_key_bits_per_chunk}x{self.rsa_key_num_chunks}"
            )
        if not self.anchor_selector:
            raise ValueError("anchor_selector no puede estar vacío")

    @property
    def rsa_key_capacity_bits(self) -> int:
        """Bits representables por la codificación en limbs"""
        return self.rsa_key_bits_per_chunk * self.rsa_key_num_chunks


def get_witness_config() -> WitnessConfig:
    """
    Obtiene la configuración desde variables de entorno

    Returns:
        Configuración del generador
    """
    return WitnessConfig()
