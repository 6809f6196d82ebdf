"""
Excepciones del generador de inputs para el circuito XML-DSig

Todas las fallas son fatales: abortan la generación completa, sin resultados
parciales ni reintentos. Cada clase lleva un `reason` distinguible.
"""
from typing import Optional


class WitnessError(Exception):
    """Excepción base para errores en la generación del witness"""

    reason = "witness generation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.reason)


class InvalidParamsError(WitnessError, ValueError):
    """Parámetros de generación inválidos"""

    reason = "invalid input generation params"


class NullifierSeedError(InvalidParamsError):
    """nullifierSeed fuera del campo del circuito"""

    reason = "Nullifier seed is larger than the max field size"


class CapacityError(WitnessError):
    """El documento o la clave no entran en la capacidad configurada"""

    reason = "input exceeds configured circuit capacity"


class CryptoEngineError(WitnessError):
    """Motor criptográfico no inicializado"""

    reason = "crypto engine not initialized, call setup_crypto_engine() first"


class XmlParseError(WitnessError):
    """XML mal formado"""

    reason = "XML could not be parsed"


class SignatureNotFoundError(WitnessError):
    """No hay <ds:Signature> en el documento"""

    reason = "XML does not contain a ds:Signature element"


class ReferenceCountError(WitnessError):
    """SignedInfo con cero o más de un <Reference>"""

    reason = "XML must contain exactly one reference"


class ReferenceTargetError(WitnessError):
    """El URI del <Reference> no apunta a ningún elemento"""

    reason = "reference target not found"


class UnsupportedAlgorithmError(WitnessError):
    """Algoritmo de firma o digest fuera de alcance"""

    reason = "unsupported signature or digest algorithm"


class UnsupportedTransformError(WitnessError):
    """Transform o URI de referencia no soportado"""

    reason = "unsupported reference transform"


class PublicKeyError(WitnessError):
    """No se pudo obtener una clave pública RSA del KeyInfo"""

    reason = "RSA public key not found in KeyInfo"


class DataHashNotFoundError(WitnessError):
    """El SHA-256 del payload firmado no aparece en SignedInfo"""

    reason = "data hash not found in SignedInfo"


class RsaVerificationError(WitnessError):
    """La verificación local RSA no coincide"""

    reason = "RSA verification failed"


class AnchorNotFoundError(WitnessError):
    """No se encontró el nodo ancla (<CertificateData>) en el buffer"""

    reason = "anchor not found in signed data"


class RevealStartNotFoundError(WitnessError):
    """Marcador revealStart ausente después del ancla"""

    reason = "reveal start not found"


class RevealEndNotFoundError(WitnessError):
    """Marcador revealEnd ausente después de revealStart"""

    reason = "reveal end not found"
