"""
Tests para la inicialización explícita del motor criptográfico
"""
import pytest

from xml_witness.crypto_engine import (
    DEFAULT_PARSER_OPTIONS,
    get_crypto_engine,
    setup_crypto_engine,
    teardown_crypto_engine,
)
from xml_witness.exceptions import CryptoEngineError


@pytest.fixture(autouse=True)
def clean_engine():
    teardown_crypto_engine()
    yield
    teardown_crypto_engine()


def test_get_without_setup_raises():
    with pytest.raises(CryptoEngineError, match="setup_crypto_engine"):
        get_crypto_engine()


def test_setup_is_idempotent():
    """Llamadas repetidas devuelven la misma instancia"""
    first = setup_crypto_engine()
    second = setup_crypto_engine()

    assert first is second
    assert get_crypto_engine() is first


def test_setup_ignores_options_after_first_call(caplog):
    engine = setup_crypto_engine()
    again = setup_crypto_engine({"huge_tree": False})

    assert again is engine
    assert engine.parser_options["huge_tree"] is True
    assert "se ignoran parser_options" in caplog.text


def test_setup_merges_parser_options():
    engine = setup_crypto_engine({"huge_tree": False})

    assert engine.parser_options["huge_tree"] is False
    assert engine.parser_options["resolve_entities"] is False
    assert DEFAULT_PARSER_OPTIONS["huge_tree"] is True


def test_teardown_forgets_engine():
    setup_crypto_engine()
    teardown_crypto_engine()
    with pytest.raises(CryptoEngineError):
        get_crypto_engine()


def test_parser_does_not_resolve_entities():
    """El parser no expande entidades externas"""
    engine = setup_crypto_engine()
    xml = b'<!DOCTYPE r [<!ENTITY e SYSTEM "file:///etc/passwd">]><r>&e;</r>'
    from lxml import etree

    root = etree.fromstring(xml, parser=engine.make_parser())
    assert "root:" not in "".join(root.itertext())


def test_describe_reports_versions():
    info = setup_crypto_engine().describe()
    assert set(info) == {"backend", "openssl", "lxml", "libxml2"}
    assert info["lxml"]


def test_load_certificate(test_certificate):
    from cryptography.hazmat.primitives.serialization import Encoding

    engine = setup_crypto_engine()
    der = test_certificate.public_bytes(Encoding.DER)
    assert engine.load_certificate(der).serial_number == test_certificate.serial_number
