import hashlib
import logging
from datetime import datetime
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from OpenSSL.crypto import X509

from . import util

__module__ = "trustcheck.certificate"

logger = logging.getLogger(__name__)


class Certificate:
    def __init__(self, certificate: x509.Certificate) -> None:
        if not isinstance(certificate, x509.Certificate):
            raise TypeError(
                f"provided an invalid type {type(certificate)} for certificate, expected cryptography.x509.Certificate"
            )
        self._x509 = certificate

    @classmethod
    def from_pem(cls, pem: Union[bytes, str]):
        if isinstance(pem, str):
            pem = pem.encode()
        return cls(x509.load_pem_x509_certificate(pem))

    @classmethod
    def from_der(cls, der: bytes):
        return cls(x509.load_der_x509_certificate(der))

    @classmethod
    def from_openssl(cls, cert: X509):
        return cls(cert.to_cryptography())

    def __eq__(self, other) -> bool:
        return isinstance(other, Certificate) and self.der == other.der

    def __hash__(self) -> int:
        return hash(self.der)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} subject={self.subject!r} serial={self.serial_number_hex}>"

    @property
    def x509(self) -> x509.Certificate:
        return self._x509

    @property
    def der(self) -> bytes:
        return self._x509.public_bytes(Encoding.DER)

    @property
    def pem(self) -> str:
        return util.force_str(self._x509.public_bytes(Encoding.PEM))

    @property
    def version(self) -> int:
        return self._x509.version.value + 1

    @property
    def public_key_type(self) -> Union[str, None]:
        public_key = self._x509.public_key()
        if isinstance(public_key, rsa.RSAPublicKey):
            return "RSA"
        if isinstance(public_key, dsa.DSAPublicKey):
            return "DSA"
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            return "EC"
        if isinstance(public_key, ed25519.Ed25519PublicKey):
            return "Ed25519"
        if isinstance(public_key, ed448.Ed448PublicKey):
            return "Ed448"
        return None

    @property
    def public_key_size(self) -> Union[int, None]:
        return getattr(self._x509.public_key(), "key_size", None)

    @property
    def public_key_curve(self) -> Union[str, None]:
        public_key = self._x509.public_key()
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            return public_key.curve.name
        return None

    @property
    def serial_number(self) -> int:
        return self._x509.serial_number

    @property
    def serial_number_hex(self) -> str:
        return "{0:#0{1}x}".format(  # pylint: disable=consider-using-f-string
            self._x509.serial_number, 4
        )

    @property
    def subject(self) -> str:
        return self._x509.subject.rfc4514_string()

    @property
    def subject_common_name(self) -> Union[str, None]:
        return util.from_subject(self._x509.subject)

    @property
    def issuer(self) -> str:
        return self._x509.issuer.rfc4514_string()

    @property
    def issuer_common_name(self) -> Union[str, None]:
        return util.from_subject(self._x509.issuer)

    @property
    def signature_algorithm(self) -> Union[str, None]:
        oid = self._x509.signature_algorithm_oid
        return getattr(oid, "_name", None) or oid.dotted_string

    @property
    def sha256_fingerprint(self) -> str:
        return hashlib.sha256(self.der).hexdigest()

    @property
    def sha1_fingerprint(self) -> str:
        return hashlib.sha1(self.der).hexdigest()

    @property
    def spki_fingerprint(self) -> str:
        return hashlib.sha256(
            self._x509.public_key().public_bytes(
                Encoding.DER, PublicFormat.SubjectPublicKeyInfo
            )
        ).hexdigest()

    @property
    def dns_names(self) -> list[str]:
        return util.get_san(self._x509)

    @property
    def not_before(self) -> datetime:
        return self._x509.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self._x509.not_valid_after_utc

    @property
    def expiry_status(self) -> str:
        return util.date_diff(self.not_after)

    @property
    def ocsp_urls(self) -> list[str]:
        return util.get_ocsp_urls(self._x509)

    @property
    def crl_urls(self) -> list[str]:
        return util.get_crl_urls(self._x509)

    @property
    def is_ca(self) -> bool:
        ca, _ = util.get_basic_constraints(self._x509)
        return ca is True

    @property
    def path_length(self) -> Union[int, None]:
        _, path_length = util.get_basic_constraints(self._x509)
        return path_length

    @property
    def subject_key_identifier(self) -> Union[str, None]:
        return util.get_key_identifier_hex(
            self._x509, x509.extensions.SubjectKeyIdentifier
        )

    @property
    def authority_key_identifier(self) -> Union[str, None]:
        return util.get_key_identifier_hex(
            self._x509, x509.extensions.AuthorityKeyIdentifier
        )

    @property
    def is_self_signed(self) -> bool:
        return util.is_self_signed(self._x509)

    def is_issued_by(self, issuer: "Certificate") -> bool:
        return util.is_issued_by(self._x509, issuer.x509)

    def to_dict(self) -> dict:
        keys = [
            a
            for a in dir(self)
            if not a.startswith("_")
            and a not in ["der", "x509"]
            and not callable(getattr(self, a))
        ]
        ret = {}
        for key in keys:
            value = getattr(self, key)
            ret[key] = value.isoformat() if isinstance(value, datetime) else value
        return ret


class LeafCertificate(Certificate):
    def to_dict(self) -> dict:
        ret = super().to_dict()
        ret["type"] = "leaf"
        return ret


class IntermediateCertificate(Certificate):
    def to_dict(self) -> dict:
        ret = super().to_dict()
        ret["type"] = "intermediate"
        return ret


class RootCertificate(Certificate):
    def to_dict(self) -> dict:
        ret = super().to_dict()
        ret["type"] = "root"
        return ret


class TrustAnchor(Certificate):
    """A certificate admitted as a root of trust, owned by one TrustAnchorStore"""

    def to_dict(self) -> dict:
        ret = super().to_dict()
        ret["type"] = "anchor"
        return ret


def classify_chain(certificates: list[x509.Certificate]) -> list[Certificate]:
    chain = []
    for index, cert in enumerate(certificates):
        if index == 0:
            chain.append(LeafCertificate(cert))
        elif util.is_self_signed(cert):
            chain.append(RootCertificate(cert))
        else:
            chain.append(IntermediateCertificate(cert))
    return chain


def to_x509(cert: Union[Certificate, x509.Certificate]) -> x509.Certificate:
    if isinstance(cert, Certificate):
        return cert.x509
    if isinstance(cert, x509.Certificate):
        return cert
    raise TypeError(
        f"provided an invalid type {type(cert)} for certificate, expected Certificate"
    )
