"""
Pytest configuration y fixtures para tests del generador de inputs

Los documentos firmados se construyen acá mismo: clave RSA 2048 + certificado
autofirmado (cryptography) y canonicalización C14N (lxml), firmando SignedInfo
con RSA-SHA1 y el payload con SHA-256, igual que los documentos reales.
"""
import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest
from lxml import etree
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.serialization import Encoding

from xml_witness.crypto_engine import setup_crypto_engine, teardown_crypto_engine

DS_NS = "http://www.w3.org/2000/09/xmldsig#"
RSA_SHA1 = f"{DS_NS}rsa-sha1"
RSA_SHA256 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256"
DIGEST_SHA256 = "http://www.w3.org/2001/04/xmlenc#sha256"
ENVELOPED = f"{DS_NS}enveloped-signature"
C14N = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"
EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"

# Registro de verificación de PAN, con la forma de los certificados reales
PAN_CERTIFICATE = (
    '<Certificate language="99" name="PAN Verification Record" type="PANCR" '
    'number="ABCDE1234F" prevNumber="" expiryDate="" status="A" issuedAt="DITE" '
    'issueDate="14-06-2024">'
    '<IssuedBy><Organization name="Income Tax Department" code="ITD" tin="" uid="" type="CG">'
    '<Address type="" line1="" line2="" house="" landmark="" locality="" vtc="" '
    'district="" pin="" state="" country="IN"/></Organization></IssuedBy>'
    '<IssuedTo><Person uid="XXXXXXXX1234" title="" name="Jane Doe" dob="01-01-1990" '
    'gender="F" phone="" email=""><Photo format="jpeg"></Photo></Person></IssuedTo>'
    '<CertificateData><PAN number="ABCDE1234F" name="JANE DOE" status="VALID" '
    'verifiedOn="14-06-2024"/></CertificateData>'
    '</Certificate>'
)

# Ancla dentro del primer bloque de 64 bytes
SHORT_CERTIFICATE = (
    '<Doc><CertificateData><X509Data Type="X509Data" serial="42">'
    'payload</X509Data></CertificateData></Doc>'
)


def pytest_configure(config):
    """Registra markers personalizados"""
    config.addinivalue_line(
        "markers", "integration: pipeline completo sobre documentos firmados reales"
    )


@pytest.fixture(scope="session")
def rsa_private_key():
    """Clave RSA 2048 de prueba"""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
        backend=default_backend()
    )


@pytest.fixture(scope="session")
def test_certificate(rsa_private_key):
    """
    Certificado autofirmado (solo para testing)
    """
    subject = issuer = x509.Name([
        x509.NameAttribute(x509.NameOID.COUNTRY_NAME, "IN"),
        x509.NameAttribute(x509.NameOID.ORGANIZATION_NAME, "Test Issuer"),
        x509.NameAttribute(x509.NameOID.COMMON_NAME, "xml-witness-test"),
    ])
    now = datetime.now(timezone.utc)
    return x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer
    ).public_key(
        rsa_private_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - timedelta(days=1)
    ).not_valid_after(
        now + timedelta(days=365)
    ).sign(rsa_private_key, hashes.SHA256(), default_backend())


@pytest.fixture
def engine():
    """Motor criptográfico inicializado explícitamente, como lo hace el host"""
    teardown_crypto_engine()
    yield setup_crypto_engine()
    teardown_crypto_engine()


def _ds(tag: str) -> str:
    return f"{{{DS_NS}}}{tag}"


def _b64_int(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, byteorder="big")
    return base64.b64encode(raw).decode("ascii")


def sign_document(
    document: str,
    private_key,
    certificate=None,
    *,
    use_key_value: bool = False,
    c14n_algorithm: str = C14N,
    signature_method: str = RSA_SHA1,
    reference_count: int = 1,
    reference_uri: str = "",
) -> str:
    """
    Firma document con una Signature enveloped (RSA-SHA1 sobre SignedInfo,
    SHA-256 sobre el documento canónico sin la firma).
    """
    root = etree.fromstring(document.encode("utf-8"))
    tree = root.getroottree()

    if reference_uri:
        target = tree.xpath("//*[@Id=$v]", v=reference_uri[1:])[0]
    else:
        target = tree
    signed_data = etree.tostring(target, method="c14n", exclusive=False, with_comments=False)
    digest = base64.b64encode(hashlib.sha256(signed_data).digest()).decode("ascii")

    sig = etree.SubElement(root, _ds("Signature"), nsmap={None: DS_NS})
    signed_info = etree.SubElement(sig, _ds("SignedInfo"))
    etree.SubElement(signed_info, _ds("CanonicalizationMethod"), Algorithm=c14n_algorithm)
    etree.SubElement(signed_info, _ds("SignatureMethod"), Algorithm=signature_method)
    for _ in range(reference_count):
        reference = etree.SubElement(signed_info, _ds("Reference"), URI=reference_uri)
        transforms = etree.SubElement(reference, _ds("Transforms"))
        etree.SubElement(transforms, _ds("Transform"), Algorithm=ENVELOPED)
        etree.SubElement(reference, _ds("DigestMethod"), Algorithm=DIGEST_SHA256)
        etree.SubElement(reference, _ds("DigestValue")).text = digest

    exclusive = c14n_algorithm.startswith(EXC_C14N)
    signed_info_c14n = etree.tostring(
        signed_info, method="c14n", exclusive=exclusive, with_comments=False
    )
    signature = private_key.sign(signed_info_c14n, padding.PKCS1v15(), hashes.SHA1())
    etree.SubElement(sig, _ds("SignatureValue")).text = base64.b64encode(signature).decode("ascii")

    key_info = etree.SubElement(sig, _ds("KeyInfo"))
    if use_key_value or certificate is None:
        numbers = private_key.public_key().public_numbers()
        rsa_key_value = etree.SubElement(
            etree.SubElement(key_info, _ds("KeyValue")), _ds("RSAKeyValue")
        )
        etree.SubElement(rsa_key_value, _ds("Modulus")).text = _b64_int(numbers.n)
        etree.SubElement(rsa_key_value, _ds("Exponent")).text = _b64_int(numbers.e)
    else:
        x509_data = etree.SubElement(key_info, _ds("X509Data"))
        etree.SubElement(x509_data, _ds("X509SubjectName")).text = certificate.subject.rfc4514_string()
        etree.SubElement(x509_data, _ds("X509Certificate")).text = base64.b64encode(
            certificate.public_bytes(Encoding.DER)
        ).decode("ascii")

    return etree.tostring(root, encoding="unicode")


@pytest.fixture
def sign_xml(rsa_private_key, test_certificate) -> Callable[..., str]:
    """Factory: firma un documento con la clave/certificado de prueba"""
    def _sign(document: str = PAN_CERTIFICATE, certificate: Optional[object] = test_certificate, **kwargs) -> str:
        return sign_document(document, rsa_private_key, certificate, **kwargs)
    return _sign


@pytest.fixture
def signed_pan_xml(sign_xml) -> str:
    return sign_xml(PAN_CERTIFICATE)


@pytest.fixture
def signed_short_xml(sign_xml) -> str:
    return sign_xml(SHORT_CERTIFICATE)
