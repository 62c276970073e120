import sys
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Union

import requests
from rich.console import Console

from . import cli, constants, trust, util
from .config import get_config
from .exceptions import ConnectError, OCSPError, OCSPFailure
from .models import (
    CertificateReport,
    HostReport,
    RevocationStatus,
    RevocationVerdict,
    RetrievedChain,
    Seed,
    SeedSource,
    ValidationVerdict,
)
from .revocation import RevocationChecker
from .transport import ChainRetriever
from .trust import TrustAnchorStore
from .validator import ChainValidator

__module__ = "trustcheck"
__version__ = "1.0.0"

assert sys.version_info >= (3, 9), "Requires Python 3.9 or newer"
logger = logging.getLogger(__name__)


class TrustCheck:
    _console: Console = None
    trust_store: TrustAnchorStore = None

    def __init__(
        self,
        config: dict = None,
        console: Console = None,
        session: requests.Session = None,
        trust_store: TrustAnchorStore = None,
    ) -> None:
        self.config = config or get_config()
        self._console = console
        self._session = session or requests.Session()
        self._use_icons = any(
            n.get("type") == "console" and n.get("use_icons")
            for n in self.config.get("outputs", [])
        )
        self.trust_store = trust_store
        defaults = self.config["defaults"]
        self.timeout = defaults.get("timeout", constants.DEFAULT_TIMEOUT)
        self.retriever = ChainRetriever(timeout=self.timeout)
        self.validator = ChainValidator()
        self.revocation = RevocationChecker(self._session, timeout=self.timeout)

    def seeds(self) -> list[Seed]:
        defaults = self.config["defaults"]
        if defaults.get("cafile"):
            # an explicit bundle replaces every other trust source
            return [Seed(SeedSource.FILE, defaults["cafile"])]
        seeds = []
        if defaults.get("use_bootstrap", True):
            seeds.append(Seed(SeedSource.BOOTSTRAP))
        if defaults.get("use_feed", True):
            seeds.append(
                Seed(SeedSource.FEED, defaults.get("feed_url", constants.CCADB_FEED_URL))
            )
        return seeds

    def load_trust_store(self) -> TrustAnchorStore:
        if self.trust_store is not None:
            return self.trust_store
        self.trust_store = trust.assemble(
            self.seeds(), session=self._session, timeout=self.timeout
        )
        for seed, err in self.trust_store.failures:
            cli.failln(
                str(err),
                result_text=type(err).__name__,
                aside=seed.kind.value,
                con=self._console,
                use_icons=self._use_icons,
            )
        cli.infoln(
            f"Trust store contains {len(self.trust_store)} anchors",
            con=self._console,
            use_icons=self._use_icons,
        )
        return self.trust_store

    def check(self, target: str, port: int = None) -> HostReport:
        try:
            hostname, target_port = util.parse_target(
                target, port or constants.DEFAULT_PORT
            )
        except ValueError as err:
            report = HostReport(hostname=str(target), port=port or constants.DEFAULT_PORT)
            report.error = (type(err).__name__, str(err))
            cli.failln(str(err), result_text="ValueError", con=self._console)
            return report
        port = port or target_port
        report = HostReport(hostname=hostname, port=port)
        try:
            self._inspect(report)
        except ConnectError as err:
            logger.warning(f"{hostname}:{port} {err.cause.value} {err}")
            self._record_error(report, err, err.cause.value.upper())
        except Exception as err:  # pylint: disable=broad-except
            # one malformed host must not abort a batch
            logger.exception(f"{hostname}:{port} {err}")
            self._record_error(report, err, type(err).__name__)
        return report

    def _record_error(self, report: HostReport, err: Exception, label: str) -> None:
        report.error = (type(err).__name__, str(err))
        report.chain_verdict = None
        report.certificates = []
        cli.failln(
            str(err),
            result_text=label,
            hostname=report.hostname,
            port=report.port,
            con=self._console,
            use_icons=self._use_icons,
        )

    def _inspect(self, report: HostReport) -> None:
        hostname, port = report.hostname, report.port
        store = self.load_trust_store()
        chain = self.retriever.fetch(
            hostname,
            store,
            allow_insecure_fallback=self.config["defaults"].get("insecure", False),
            port=port,
        )
        report.chain = chain
        cli.outputln(
            f"Negotiated {chain.negotiated_protocol} {chain.peer_address}",
            hostname=hostname,
            port=port,
            result_text="INSECURE" if chain.insecure else "TLS",
            result_level=constants.RESULT_LEVEL_WARN
            if chain.insecure
            else constants.RESULT_LEVEL_INFO,
            con=self._console,
            use_icons=self._use_icons,
        )
        report.chain_verdict, validity = self.validator.validate(chain, store)
        report.certificates = [
            CertificateReport(certificate=cert, validity=verdict)
            for cert, verdict in zip(chain.certificates, validity)
        ]
        if not self.config["defaults"].get("skip_ocsp", False):
            report.leaf.revocation = self.check_revocation(chain, store)

    def check_revocation(
        self, chain: RetrievedChain, store: TrustAnchorStore
    ) -> RevocationVerdict:
        leaf = chain.leaf
        candidates = [cert.x509 for cert in chain.intermediates] + [
            anchor.x509 for anchor in store.anchors()
        ]
        issuer = util.issuer_from_chain(leaf.x509, candidates)
        if issuer is None:
            return RevocationVerdict.check_failed(
                OCSPError(
                    OCSPFailure.NO_ISSUER,
                    f"issuer of {leaf.subject} is not present in the chain or trust store",
                )
            )
        try:
            return self.revocation.check_ocsp(leaf, issuer)
        except OCSPError as err:
            logger.info(f"{chain.hostname}:{chain.port} {err}")
            return RevocationVerdict.check_failed(err)

    def check_many(self, targets: list, workers: int = None) -> list[HostReport]:
        # assembled once up front, the store is only read by the workers
        self.load_trust_store()
        workers = workers or self.config["defaults"].get(
            "workers", constants.DEFAULT_WORKERS
        )
        results: dict[int, HostReport] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(self._check_target, target): index
                for index, target in enumerate(targets)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        return [results[index] for index in range(len(targets))]

    def _check_target(self, target: Union[str, dict]) -> HostReport:
        if isinstance(target, dict):
            return self.check(target["hostname"], target.get("port"))
        return self.check(target)


def check(
    hostname: str,
    port: int = None,
    config: dict = None,
    console: Console = None,
    **kwargs,
) -> HostReport:
    return TrustCheck(config=config, console=console, **kwargs).check(hostname, port)


def is_valid(report: HostReport) -> bool:
    if report.error or not report.chain_verdict or not report.chain_verdict.trusted:
        return False
    if any(cert.validity != ValidationVerdict.VALID for cert in report.certificates):
        return False
    revocation = report.leaf.revocation if report.leaf else None
    return revocation is None or revocation.status == RevocationStatus.GOOD
