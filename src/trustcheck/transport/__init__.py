import logging
import select
import socket
from time import monotonic
from typing import Union

import idna
from OpenSSL import SSL, crypto
from OpenSSL.crypto import X509

from .. import constants, exceptions, util
from ..certificate import Certificate
from ..exceptions import ConnectCause, ConnectError
from ..models import RetrievedChain

__module__ = "trustcheck.transport"

logger = logging.getLogger(__name__)


class TLSTransport:
    _default_connect_method: str = "TLS_CLIENT_METHOD"
    _default_connect_verify_mode: str = "VERIFY_PEER"
    check_hostname: bool = True

    def __init__(
        self,
        hostname: str,
        port: int = constants.DEFAULT_PORT,
        timeout: int = constants.DEFAULT_TIMEOUT,
    ) -> None:
        if not isinstance(port, int):
            raise TypeError(
                f"provided an invalid type {type(port)} for port, expected int"
            )
        if not util.is_valid_hostname(hostname):
            raise ValueError(f"provided an invalid domain {hostname}")
        self.hostname = hostname
        self.port = port
        self.timeout = timeout
        self._verifier_errors: list[tuple[X509, int]] = []

    @property
    def verifier_errors(self) -> list[int]:
        return [errno for _, errno in self._verifier_errors]

    def _verifier(
        self,
        conn: SSL.Connection,
        server_cert: X509,
        errno: int,
        depth: int,
        preverify_ok: int,
    ) -> bool:
        # preverify_ok is 0 when OpenSSL rejected the certificate at this depth
        if errno:
            logger.debug(
                f"{self.hostname}:{self.port} verify errno {errno} at depth {depth}"
            )
            self._verifier_errors.append((server_cert, errno))
        return bool(preverify_ok)

    def prepare_context(self, anchors: list[Certificate]) -> SSL.Context:
        ctx = SSL.Context(method=getattr(SSL, self._default_connect_method))
        cert_store = ctx.get_cert_store()
        seen = set()
        for anchor in anchors:
            if anchor.der in seen:
                continue
            seen.add(anchor.der)
            try:
                cert_store.add_cert(X509.from_cryptography(anchor.x509))
            except crypto.Error as ex:
                logger.debug(
                    f"SHA1:{anchor.sha1_fingerprint} not loaded as a verify location: {ex}"
                )
        ctx.set_verify(
            getattr(SSL, self._default_connect_verify_mode), self._verifier
        )
        return ctx

    def prepare_socket(self) -> socket.socket:
        sock = socket.create_connection((self.hostname, self.port), timeout=self.timeout)
        sock.setblocking(False)
        return sock

    def do_handshake(self, conn: SSL.Connection) -> None:
        deadline = monotonic() + self.timeout
        while True:
            try:
                conn.do_handshake()
                return
            except SSL.WantReadError:
                wait = ([conn], [], [])
            except SSL.WantWriteError:
                wait = ([], [conn], [])
            remaining = deadline - monotonic()
            if remaining <= 0:
                raise socket.timeout(
                    f"TLS handshake did not complete within {self.timeout}s"
                )
            select.select(*wait, remaining)

    def connect(self, anchors: list[Certificate] = None) -> RetrievedChain:
        self._verifier_errors = []
        logger.info(f"{self.hostname}:{self.port} Negotiating TLS")
        ctx = self.prepare_context(anchors or [])
        try:
            sock = self.prepare_socket()
        except socket.gaierror as err:
            raise ConnectError(
                f"unable to resolve {self.hostname}: {err}",
                self.hostname,
                self.port,
                cause=ConnectCause.DNS,
            ) from err
        except (socket.timeout, TimeoutError) as err:
            raise ConnectError(
                f"connection to {self.hostname}:{self.port} timed out",
                self.hostname,
                self.port,
                cause=ConnectCause.TIMEOUT,
            ) from err
        except ConnectionRefusedError as err:
            raise ConnectError(
                f"connection to {self.hostname}:{self.port} was refused",
                self.hostname,
                self.port,
                cause=ConnectCause.REFUSED,
            ) from err
        except OSError as err:
            raise ConnectError(
                f"unable to connect to {self.hostname}:{self.port}: {err}",
                self.hostname,
                self.port,
                cause=ConnectCause.NETWORK,
            ) from err

        conn = SSL.Connection(ctx, sock)
        conn.set_tlsext_host_name(idna.encode(self.hostname))
        conn.set_connect_state()
        try:
            self.do_handshake(conn)
            chain = self._collect(conn)
            try:
                conn.shutdown()
            except SSL.Error as ex:
                logger.debug(ex, exc_info=True)
        except ConnectError:
            raise
        except (socket.timeout, TimeoutError) as err:
            raise ConnectError(
                f"TLS handshake with {self.hostname}:{self.port} timed out",
                self.hostname,
                self.port,
                cause=ConnectCause.TIMEOUT,
            ) from err
        except SSL.Error as err:
            logger.warning(f"{self.hostname}:{self.port} {err}")
            errno = self.verifier_errors[-1] if self.verifier_errors else None
            raise ConnectError(
                hostname=self.hostname,
                port=self.port,
                cause=ConnectCause.UNTRUSTED if errno else ConnectCause.HANDSHAKE,
                openssl_errno=errno,
            ) from err
        except OSError as err:
            raise ConnectError(
                f"connection to {self.hostname}:{self.port} failed during the handshake: {err}",
                self.hostname,
                self.port,
                cause=ConnectCause.NETWORK,
            ) from err
        finally:
            conn.close()

        if self.check_hostname and not util.match_hostname(
            self.hostname, util.get_san(chain.leaf.x509)
        ):
            raise ConnectError(
                exceptions.CONNECT_ERROR_HOSTNAME.format(
                    host=self.hostname, port=self.port
                ),
                self.hostname,
                self.port,
                cause=ConnectCause.UNTRUSTED,
                openssl_errno=exceptions.X509_V_ERR_HOSTNAME_MISMATCH,
            )
        return chain

    def _collect(self, conn: SSL.Connection) -> RetrievedChain:
        peer_chain = conn.get_peer_cert_chain() or []
        if not peer_chain:
            raise ConnectError(
                exceptions.CONNECT_ERROR_NO_CERTIFICATES.format(
                    host=self.hostname, port=self.port
                ),
                self.hostname,
                self.port,
                cause=ConnectCause.NO_CERTIFICATES,
            )
        logger.debug(
            f"{self.hostname}:{self.port} Peer cert chain length: {len(peer_chain)}"
        )
        verified = conn.get_verified_chain() or []
        peer_address, *_ = conn.getpeername()
        return RetrievedChain.from_x509(
            self.hostname,
            self.port,
            [cert.to_cryptography() for cert in peer_chain],
            verified_chain=[Certificate.from_openssl(cert) for cert in verified],
            insecure=self._default_connect_verify_mode == "VERIFY_NONE",
            negotiated_protocol=conn.get_protocol_version_name(),
            negotiated_cipher=conn.get_cipher_name(),
            peer_address=peer_address,
            verify_errors=self.verifier_errors,
        )


from .insecure import InsecureTransport  # pylint: disable=wrong-import-position


class ChainRetriever:
    def __init__(self, timeout: int = constants.DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def fetch(
        self,
        hostname: str,
        trust_store,
        allow_insecure_fallback: bool = False,
        port: int = constants.DEFAULT_PORT,
    ) -> RetrievedChain:
        anchors = list(trust_store.anchors()) if trust_store is not None else []
        transport = TLSTransport(hostname, port, timeout=self.timeout)
        try:
            return transport.connect(anchors)
        except ConnectError as err:
            if not allow_insecure_fallback or not err.is_tls_failure:
                raise
            logger.warning(
                f"{hostname}:{port} {err.cause.value} failure, retrying without verification to read the chain"
            )
        return InsecureTransport(hostname, port, timeout=self.timeout).connect()


def fetch(
    hostname: str,
    trust_store,
    allow_insecure_fallback: bool = False,
    port: int = constants.DEFAULT_PORT,
    timeout: Union[int, None] = None,
) -> RetrievedChain:
    return ChainRetriever(timeout or constants.DEFAULT_TIMEOUT).fetch(
        hostname, trust_store, allow_insecure_fallback, port
    )
