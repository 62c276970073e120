import logging

from OpenSSL import SSL
from OpenSSL.crypto import X509

from .. import constants
from ..transport import TLSTransport

__module__ = "trustcheck.transport.insecure"
logger = logging.getLogger(__name__)


class InsecureTransport(TLSTransport):
    """Throwaway transport used only to read the chain a server presents.

    Nothing is verified: the context carries no trust anchors and the hostname
    is not matched, so every chain it returns is flagged insecure.
    """

    _default_connect_verify_mode: str = "VERIFY_NONE"
    check_hostname: bool = False

    def __init__(
        self,
        hostname: str,
        port: int = constants.DEFAULT_PORT,
        timeout: int = constants.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(hostname, port, timeout)

    def prepare_context(self, anchors=None) -> SSL.Context:
        return super().prepare_context([])

    def _verifier(
        self,
        conn: SSL.Connection,
        server_cert: X509,
        errno: int,
        depth: int,
        preverify_ok: int,
    ) -> bool:
        if errno:
            logger.debug(
                f"{self.hostname}:{self.port} ignoring verify errno {errno} at depth {depth}"
            )
            self._verifier_errors.append((server_cert, errno))
        return True
