import socket
import ssl
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)
from cryptography.x509 import ocsp
from cryptography.x509.oid import (
    AuthorityInformationAccessOID,
    ExtendedKeyUsageOID,
    NameOID,
)

HOSTNAME = "trustcheck.test"
OCSP_URL = "http://ocsp.trustcheck.test/"
NOW = datetime.now(timezone.utc).replace(microsecond=0)


def make_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_certificate(
    common_name: str,
    key,
    issuer: x509.Certificate = None,
    issuer_key=None,
    ca: bool = False,
    path_length: int = None,
    dns_names: list = None,
    ocsp_urls: list = None,
    not_before: datetime = None,
    not_after: datetime = None,
    extended_key_usage: list = None,
) -> x509.Certificate:
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    ski = x509.SubjectKeyIdentifier.from_public_key(key.public_key())
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.subject if issuer else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or NOW - timedelta(days=1))
        .not_valid_after(not_after or NOW + timedelta(days=90))
        .add_extension(ski, critical=False)
    )
    if issuer is not None:
        issuer_ski = issuer.extensions.get_extension_for_class(
            x509.SubjectKeyIdentifier
        ).value
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(
                issuer_ski
            ),
            critical=False,
        )
    if ca:
        builder = builder.add_extension(
            x509.BasicConstraints(ca=True, path_length=path_length), critical=True
        ).add_extension(
            x509.KeyUsage(
                digital_signature=False,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.BasicConstraints(ca=False, path_length=None), critical=True
        ).add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        builder = builder.add_extension(
            x509.ExtendedKeyUsage(
                extended_key_usage or [ExtendedKeyUsageOID.SERVER_AUTH]
            ),
            critical=False,
        )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_names]),
            critical=False,
        )
    if ocsp_urls:
        builder = builder.add_extension(
            x509.AuthorityInformationAccess(
                [
                    x509.AccessDescription(
                        AuthorityInformationAccessOID.OCSP,
                        x509.UniformResourceIdentifier(url),
                    )
                    for url in ocsp_urls
                ]
            ),
            critical=False,
        )
    return builder.sign(issuer_key or key, hashes.SHA256())


def pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(Encoding.PEM).decode()


@dataclass
class PKI:
    root_key: ec.EllipticCurvePrivateKey
    root: x509.Certificate
    intermediate_key: ec.EllipticCurvePrivateKey
    intermediate: x509.Certificate
    leaf_key: ec.EllipticCurvePrivateKey
    leaf: x509.Certificate

    @property
    def chain(self) -> list:
        return [self.leaf, self.intermediate]


def make_pki(
    dns_names: list = None,
    ocsp_urls: list = None,
    root_not_before: datetime = None,
    root_not_after: datetime = None,
    leaf_not_before: datetime = None,
    leaf_not_after: datetime = None,
    intermediate_path_length: int = None,
) -> PKI:
    root_key = make_key()
    root = make_certificate(
        "Trustcheck Test Root",
        root_key,
        ca=True,
        not_before=root_not_before,
        not_after=root_not_after,
    )
    intermediate_key = make_key()
    intermediate = make_certificate(
        "Trustcheck Test Intermediate",
        intermediate_key,
        issuer=root,
        issuer_key=root_key,
        ca=True,
        path_length=intermediate_path_length,
    )
    leaf_key = make_key()
    leaf = make_certificate(
        dns_names[0] if dns_names else HOSTNAME,
        leaf_key,
        issuer=intermediate,
        issuer_key=intermediate_key,
        dns_names=dns_names or [HOSTNAME, "localhost"],
        ocsp_urls=[OCSP_URL] if ocsp_urls is None else ocsp_urls,
        not_before=leaf_not_before,
        not_after=leaf_not_after,
    )
    return PKI(root_key, root, intermediate_key, intermediate, leaf_key, leaf)


def make_ocsp_response(
    leaf: x509.Certificate,
    issuer: x509.Certificate,
    signer_key,
    status: ocsp.OCSPCertStatus = ocsp.OCSPCertStatus.GOOD,
    revocation_time: datetime = None,
    revocation_reason: x509.ReasonFlags = None,
    this_update: datetime = None,
    next_update: datetime = None,
    responder: x509.Certificate = None,
) -> bytes:
    builder = (
        ocsp.OCSPResponseBuilder()
        .add_response(
            cert=leaf,
            issuer=issuer,
            algorithm=hashes.SHA256(),
            cert_status=status,
            this_update=this_update or NOW - timedelta(hours=1),
            next_update=next_update or NOW + timedelta(days=1),
            revocation_time=revocation_time,
            revocation_reason=revocation_reason,
        )
        .responder_id(ocsp.OCSPResponderEncoding.HASH, responder or issuer)
    )
    if responder is not None:
        builder = builder.certificates([responder])
    return builder.sign(signer_key, hashes.SHA256()).public_bytes(Encoding.DER)


@pytest.fixture(scope="session")
def pki() -> PKI:
    return make_pki()


@pytest.fixture
def serve_chain(tmp_path):
    """Start a TLS server on 127.0.0.1 presenting the given chain, returns its port"""
    servers = []

    def _serve(chain: list, key) -> int:
        certfile = tmp_path / f"chain-{len(servers)}.pem"
        keyfile = tmp_path / f"key-{len(servers)}.pem"
        certfile.write_text("".join(pem(cert) for cert in chain))
        keyfile.write_bytes(
            key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
        )
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ctx.load_cert_chain(str(certfile), str(keyfile))
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(("127.0.0.1", 0))
        listener.listen(8)
        listener.settimeout(0.2)
        stop = threading.Event()

        def _accept():
            while not stop.is_set():
                try:
                    conn, _ = listener.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break
                conn.settimeout(2)
                try:
                    with ctx.wrap_socket(conn, server_side=True) as tls:
                        tls.recv(1)
                except (ssl.SSLError, OSError):
                    pass
                finally:
                    conn.close()

        thread = threading.Thread(target=_accept, daemon=True)
        thread.start()
        servers.append((listener, stop, thread))
        return listener.getsockname()[1]

    yield _serve
    for listener, stop, thread in servers:
        stop.set()
        thread.join(timeout=2)
        listener.close()


@pytest.fixture
def closed_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
