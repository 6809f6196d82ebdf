"""
Inicialización explícita del motor criptográfico

El host llama setup_crypto_engine() una vez al arrancar el proceso. La llamada
es idempotente: siempre devuelve la misma instancia, que queda de solo lectura.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from lxml import etree
from cryptography import x509
from cryptography.hazmat.backends import default_backend

from .exceptions import CryptoEngineError

logger = logging.getLogger(__name__)

# Opciones del parser: NO tocar whitespace, sin red ni entidades externas
DEFAULT_PARSER_OPTIONS: Dict[str, Any] = {
    "remove_blank_text": False,
    "resolve_entities": False,
    "no_network": True,
    "huge_tree": True,
    "recover": False,
}


@dataclass(frozen=True)
class CryptoEngine:
    """Backend criptográfico y configuración del parser XML"""

    backend: Any
    parser_options: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_PARSER_OPTIONS))

    def make_parser(self) -> etree.XMLParser:
        """Crea un parser nuevo por invocación (los parsers de lxml no se comparten)"""
        return etree.XMLParser(**self.parser_options)

    def load_certificate(self, der: bytes) -> x509.Certificate:
        return x509.load_der_x509_certificate(der, self.backend)

    def describe(self) -> Dict[str, str]:
        return {
            "backend": type(self.backend).__name__,
            "openssl": getattr(self.backend, "openssl_version_text", lambda: "unknown")(),
            "lxml": ".".join(str(v) for v in etree.LXML_VERSION),
            "libxml2": ".".join(str(v) for v in etree.LIBXML_VERSION),
        }


_engine: Optional[CryptoEngine] = None
_engine_lock = threading.Lock()


def setup_crypto_engine(parser_options: Optional[Dict[str, Any]] = None) -> CryptoEngine:
    """
    Inicializa el motor criptográfico del proceso.

    Args:
        parser_options: Opciones extra para etree.XMLParser (solo en la primera llamada)

    Returns:
        La instancia única de CryptoEngine
    """
    global _engine
    with _engine_lock:
        if _engine is not None:
            if parser_options:
                logger.warning("setup_crypto_engine() ya fue llamado; se ignoran parser_options nuevos")
            return _engine

        options = dict(DEFAULT_PARSER_OPTIONS)
        if parser_options:
            options.update(parser_options)

        _engine = CryptoEngine(backend=default_backend(), parser_options=options)
        logger.info(f"Motor criptográfico inicializado: {_engine.describe()}")
        return _engine


def get_crypto_engine() -> CryptoEngine:
    """
    Devuelve el motor inicializado.

    Raises:
        CryptoEngineError: Si setup_crypto_engine() nunca fue llamado
    """
    if _engine is None:
        raise CryptoEngineError()
    return _engine


def teardown_crypto_engine() -> None:
    """Descarta el motor (tests / apagado del host)"""
    global _engine
    with _engine_lock:
        _engine = None
