"""
Generador de inputs de circuito (hash + RSA) para documentos XML-DSig firmados
"""
from .config import CIRCOM_FIELD_P, WitnessConfig, get_witness_config
from .crypto_engine import CryptoEngine, setup_crypto_engine, get_crypto_engine, teardown_crypto_engine
from .exceptions import WitnessError
from .input_generator import CircuitInputs, InputGenerationParams, generate_input

__all__ = [
    'CIRCOM_FIELD_P', 'WitnessConfig', 'get_witness_config',
    'CryptoEngine', 'setup_crypto_engine', 'get_crypto_engine', 'teardown_crypto_engine',
    'WitnessError',
    'CircuitInputs', 'InputGenerationParams', 'generate_input',
]
