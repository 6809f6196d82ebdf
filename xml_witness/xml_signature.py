"""
Extracción de la firma XMLDSig de un documento firmado

Obtiene, para el único <Reference> del documento:
- Los bytes canónicos del payload firmado (transforms aplicados)
- Los bytes canónicos de SignedInfo
- El SignatureValue (base64)
- La clave pública RSA del KeyInfo (X509Certificate o RSAKeyValue)

El parseo y la canonicalización (C14N 1.0 inclusiva / exclusiva) se delegan a
lxml; la decodificación del certificado a cryptography.
"""

from __future__ import annotations

import base64
import binascii
import copy
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from lxml import etree
from cryptography.hazmat.primitives.asymmetric import rsa

from .crypto_engine import CryptoEngine
from .exceptions import (
    PublicKeyError,
    ReferenceCountError,
    ReferenceTargetError,
    SignatureNotFoundError,
    UnsupportedAlgorithmError,
    UnsupportedTransformError,
    XmlParseError,
)

logger = logging.getLogger(__name__)

# Namespaces
DS_NS = "http://www.w3.org/2000/09/xmldsig#"
NS = {"ds": DS_NS}
EXC_C14N_NS = "http://www.w3.org/2001/10/xml-exc-c14n#"

# Algoritmos
ENVELOPED_SIGNATURE = f"{DS_NS}enveloped-signature"
RSA_SHA1 = f"{DS_NS}rsa-sha1"
DIGEST_SHA256 = "http://www.w3.org/2001/04/xmlenc#sha256"

C14N_INCLUSIVE = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"
C14N_INCLUSIVE_WITH_COMMENTS = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315#WithComments"
C14N_EXCLUSIVE = "http://www.w3.org/2001/10/xml-exc-c14n#"
C14N_EXCLUSIVE_WITH_COMMENTS = "http://www.w3.org/2001/10/xml-exc-c14n#WithComments"

XML_DECLARATION_RE = re.compile(r"\A\ufeff?\s*<\?xml[^>]*\?>")

# algoritmo -> (exclusive, with_comments)
C14N_ALGORITHMS = {
    C14N_INCLUSIVE: (False, False),
    C14N_INCLUSIVE_WITH_COMMENTS: (False, True),
    C14N_EXCLUSIVE: (True, False),
    C14N_EXCLUSIVE_WITH_COMMENTS: (True, True),
}


@dataclass(frozen=True)
class RsaPublicKey:
    """Clave pública RSA como enteros sin signo"""

    n: int
    e: int

    @property
    def key_size(self) -> int:
        return self.n.bit_length()

    @property
    def byte_length(self) -> int:
        return (self.n.bit_length() + 7) // 8


@dataclass(frozen=True)
class SignatureParts:
    """Lo que el núcleo consume del documento firmado"""

    public_key: RsaPublicKey
    signed_data: bytes
    signed_info: bytes
    signature_b64: str
    signature_method: str
    digest_method: str
    canonicalization_method: str

    @property
    def signature(self) -> bytes:
        return base64.b64decode(self.signature_b64)

    @property
    def signature_int(self) -> int:
        return int.from_bytes(self.signature, byteorder="big")


def _b64_clean(s: str) -> str:
    # quita whitespace/newlines dentro del base64
    return re.sub(r"\s+", "", s or "")


def _b64_decode(s: str, what: str) -> bytes:
    try:
        return base64.b64decode(_b64_clean(s), validate=True)
    except (binascii.Error, ValueError) as e:
        raise PublicKeyError(f"{what} no es base64 válido: {e}") from e


def _parse_xml(xml: Union[str, bytes], engine: CryptoEngine) -> etree._ElementTree:
    if isinstance(xml, str):
        # El str ya está decodificado: la declaración (encoding=...) no aplica a los bytes UTF-8
        data = XML_DECLARATION_RE.sub("", xml, count=1).encode("utf-8")
    else:
        data = xml
    try:
        root = etree.fromstring(data, engine.make_parser())
    except etree.XMLSyntaxError as e:
        raise XmlParseError(f"XML could not be parsed: {e}") from e
    return root.getroottree()


def _algorithm(parent: etree._Element, child: str) -> str:
    node = parent.find(f"ds:{child}", namespaces=NS)
    if node is None or not node.get("Algorithm"):
        raise UnsupportedAlgorithmError(f"<{child}> sin atributo Algorithm")
    return node.get("Algorithm")


def _c14n_params(algorithm: str) -> Tuple[bool, bool]:
    if algorithm not in C14N_ALGORITHMS:
        raise UnsupportedTransformError(f"Algoritmo de canonicalización no soportado: {algorithm}")
    return C14N_ALGORITHMS[algorithm]


def _inclusive_prefixes(transform: etree._Element) -> Optional[list]:
    node = transform.find(f"{{{EXC_C14N_NS}}}InclusiveNamespaces")
    if node is None or not node.get("PrefixList"):
        return None
    return node.get("PrefixList").split()


def _canonicalize(
    node: Union[etree._Element, etree._ElementTree],
    algorithm: str,
    inclusive_ns_prefixes: Optional[list] = None,
    with_comments: Optional[bool] = None,
) -> bytes:
    exclusive, comments = _c14n_params(algorithm)
    if with_comments is not None:
        comments = with_comments
    return etree.tostring(
        node,
        method="c14n",
        exclusive=exclusive,
        with_comments=comments,
        inclusive_ns_prefixes=inclusive_ns_prefixes if exclusive else None,
    )


def _same_node_in_copy(tree_copy: etree._ElementTree, node: etree._Element) -> etree._Element:
    """Ubica en la copia el nodo equivalente, por posición entre hermanos"""
    positions = []
    while node.getparent() is not None:
        parent = node.getparent()
        positions.append(parent.index(node))
        node = parent
    found = tree_copy.getroot()
    for position in reversed(positions):
        found = found[position]
    return found


def _remove_preserving_tail(elem: etree._Element) -> None:
    """Quita el elemento sin perder el texto que lo sigue (tail)"""
    parent = elem.getparent()
    if parent is None:
        raise UnsupportedTransformError("enveloped-signature sobre el elemento raíz")
    if elem.tail:
        prev = elem.getprevious()
        if prev is not None:
            prev.tail = (prev.tail or "") + elem.tail
        else:
            parent.text = (parent.text or "") + elem.tail
    parent.remove(elem)


def _resolve_reference(
    tree: etree._ElementTree, uri: Optional[str]
) -> Union[etree._Element, etree._ElementTree]:
    """URI="" -> documento completo; URI="#id" -> elemento con Id/ID/id"""
    if uri is None or uri == "":
        return tree
    if not uri.startswith("#") or uri.startswith("#xpointer("):
        raise UnsupportedTransformError(f"Reference URI no soportado: {uri!r}")

    element_id = uri[1:]
    matches = tree.xpath("//*[@Id=$v or @ID=$v or @id=$v]", v=element_id)
    if not matches:
        raise ReferenceTargetError(f"No se encontró elemento con Id='{element_id}'")
    return matches[0]


def _apply_transforms(
    tree: etree._ElementTree,
    signature: etree._Element,
    reference: etree._Element,
) -> bytes:
    """
    Aplica los transforms del <Reference> sobre una copia del documento.

    Returns:
        Octetos canónicos del objeto referenciado
    """
    target = _resolve_reference(tree, reference.get("URI"))

    enveloped = False
    c14n_algorithm = C14N_INCLUSIVE
    prefixes = None
    for transform in reference.findall("ds:Transforms/ds:Transform", namespaces=NS):
        algorithm = transform.get("Algorithm")
        if algorithm == ENVELOPED_SIGNATURE:
            enveloped = True
        elif algorithm in C14N_ALGORITHMS:
            c14n_algorithm = algorithm
            prefixes = _inclusive_prefixes(transform)
        else:
            raise UnsupportedTransformError(f"Transform no soportado: {algorithm}")

    # Copia profunda para no mutar el documento del caller
    tree_copy = copy.deepcopy(tree)
    if isinstance(target, etree._ElementTree):
        target_copy = tree_copy
    else:
        target_copy = _same_node_in_copy(tree_copy, target)

    if enveloped:
        _remove_preserving_tail(_same_node_in_copy(tree_copy, signature))

    # URI="" y URI="#id" excluyen comentarios del node-set (XMLDSig §4.3.3.3)
    return _canonicalize(target_copy, c14n_algorithm, prefixes, with_comments=False)


def _extract_public_key(signature: etree._Element, engine: CryptoEngine) -> RsaPublicKey:
    cert_node = signature.find("ds:KeyInfo//ds:X509Certificate", namespaces=NS)
    if cert_node is not None and _b64_clean(cert_node.text):
        der = _b64_decode(cert_node.text, "X509Certificate")
        try:
            cert = engine.load_certificate(der)
        except ValueError as e:
            raise PublicKeyError(f"No se pudo parsear el certificado embebido: {e}") from e
        public_key = cert.public_key()
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise PublicKeyError("La clave pública del certificado debe ser RSA")
        numbers = public_key.public_numbers()
        logger.debug(f"Clave pública desde X509Certificate: {cert.subject.rfc4514_string()}")
        return RsaPublicKey(n=numbers.n, e=numbers.e)

    key_value = signature.find("ds:KeyInfo/ds:KeyValue/ds:RSAKeyValue", namespaces=NS)
    if key_value is not None:
        modulus = key_value.findtext("ds:Modulus", namespaces=NS)
        exponent = key_value.findtext("ds:Exponent", namespaces=NS)
        if not modulus or not exponent:
            raise PublicKeyError("RSAKeyValue incompleto (Modulus/Exponent)")
        n = int.from_bytes(_b64_decode(modulus, "Modulus"), byteorder="big")
        e = int.from_bytes(_b64_decode(exponent, "Exponent"), byteorder="big")
        logger.debug("Clave pública desde RSAKeyValue")
        return RsaPublicKey(n=n, e=e)

    raise PublicKeyError()


def extract_signature_parts(xml: Union[str, bytes], engine: CryptoEngine) -> SignatureParts:
    """
    Extrae clave pública, payload firmado, SignedInfo y SignatureValue.

    Args:
        xml: Documento XML firmado (str o bytes)
        engine: Motor criptográfico inicializado

    Returns:
        SignatureParts

    Raises:
        WitnessError: ReferenceCountError, SignatureNotFoundError, etc.
    """
    tree = _parse_xml(xml, engine)

    signatures = tree.xpath("//ds:Signature", namespaces=NS)
    if not signatures:
        raise SignatureNotFoundError()
    if len(signatures) > 1:
        logger.warning(f"Se encontraron {len(signatures)} ds:Signature, se usa la primera")
    signature = signatures[0]

    signed_info = signature.find("ds:SignedInfo", namespaces=NS)
    if signed_info is None:
        raise SignatureNotFoundError("ds:Signature sin ds:SignedInfo")

    references = signed_info.findall("ds:Reference", namespaces=NS)
    if len(references) != 1:
        raise ReferenceCountError()
    reference = references[0]

    signature_method = _algorithm(signed_info, "SignatureMethod")
    if signature_method != RSA_SHA1:
        raise UnsupportedAlgorithmError(f"SignatureMethod no soportado: {signature_method}")
    digest_method = _algorithm(reference, "DigestMethod")
    if digest_method != DIGEST_SHA256:
        raise UnsupportedAlgorithmError(f"DigestMethod no soportado: {digest_method}")
    canonicalization_method = _algorithm(signed_info, "CanonicalizationMethod")

    signed_data = _apply_transforms(tree, signature, reference)

    prefixes = None
    c14n_node = signed_info.find("ds:CanonicalizationMethod", namespaces=NS)
    if c14n_node is not None:
        prefixes = _inclusive_prefixes(c14n_node)
    signed_info_bytes = _canonicalize(signed_info, canonicalization_method, prefixes)

    signature_b64 = _b64_clean(signature.findtext("ds:SignatureValue", namespaces=NS))
    if not signature_b64:
        raise SignatureNotFoundError("ds:SignatureValue vacío")
    try:
        base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureNotFoundError(f"ds:SignatureValue no es base64 válido: {e}") from e

    public_key = _extract_public_key(signature, engine)

    logger.debug(
        f"Firma extraída: signed_data={len(signed_data)} bytes, "
        f"signed_info={len(signed_info_bytes)} bytes, key={public_key.key_size} bits"
    )

    return SignatureParts(
        public_key=public_key,
        signed_data=signed_data,
        signed_info=signed_info_bytes,
        signature_b64=signature_b64,
        signature_method=signature_method,
        digest_method=digest_method,
        canonicalization_method=canonicalization_method,
    )
