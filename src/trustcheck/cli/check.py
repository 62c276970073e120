import sys
import logging

from rich import box
from rich.console import Console
from rich.table import Table

from .. import TrustCheck, cli, constants, is_valid, __version__
from ..models import HostReport, RevocationStatus, ValidationVerdict
from ..outputs.json import save_reports

__module__ = "trustcheck.cli.check"

assert sys.version_info >= (3, 9), "Requires Python 3.9 or newer"
logger = logging.getLogger(__name__)

VALIDITY_LEVEL = {
    ValidationVerdict.VALID: constants.RESULT_LEVEL_PASS,
    ValidationVerdict.NOT_YET_VALID: constants.RESULT_LEVEL_WARN,
    ValidationVerdict.EXPIRED: constants.RESULT_LEVEL_FAIL,
}
REVOCATION_LEVEL = {
    RevocationStatus.GOOD: constants.RESULT_LEVEL_PASS,
    RevocationStatus.UNKNOWN: constants.RESULT_LEVEL_WARN,
    RevocationStatus.REVOKED: constants.RESULT_LEVEL_FAIL,
    RevocationStatus.CHECK_FAILED: constants.RESULT_LEVEL_WARN,
}


def certificate_table(report: HostReport) -> Table:
    table = Table(
        title=f"{report.hostname}:{report.port}",
        title_style=f"bold {constants.CLI_COLOR_PRIMARY}",
        box=box.SIMPLE_HEAD,
    )
    table.add_column("Type", justify="right", style="dark_turquoise", no_wrap=True)
    table.add_column("Subject", no_wrap=False)
    table.add_column("DNS Names", no_wrap=False)
    table.add_column("Valid From", no_wrap=True)
    table.add_column("Valid To", no_wrap=True)
    table.add_column("Validity", no_wrap=True)
    table.add_column("Key", no_wrap=True)
    table.add_column("OCSP", no_wrap=False)
    table.add_column("CRL", no_wrap=False)
    table.add_column("SHA256 Fingerprint", no_wrap=False)
    for cert_report in report.certificates:
        cert = cert_report.certificate
        color = constants.CLI_COLOR_MAP[VALIDITY_LEVEL[cert_report.validity]]
        key = cert.public_key_type or "unknown"
        if cert.public_key_size:
            key = f"{key} {cert.public_key_size}"
        table.add_row(
            cert.to_dict()["type"],
            cert.subject_common_name or cert.subject,
            "\n".join(cert.dns_names),
            cert.not_before.isoformat(),
            cert.not_after.isoformat(),
            f"[{color}]{cert_report.validity.value}[/{color}]\n{cert.expiry_status}",
            key,
            "\n".join(cert.ocsp_urls),
            "\n".join(cert.crl_urls),
            cert.sha256_fingerprint,
        )
    return table


def print_report(report: HostReport, con: Console, use_icons: bool = False) -> None:
    if report.error:
        return
    con.print(certificate_table(report))
    verdict = report.chain_verdict
    if verdict.trusted:
        cli.passln(
            f"{verdict.verdict.value} {verdict.message or ''}",
            hostname=report.hostname,
            port=report.port,
            con=con,
            use_icons=use_icons,
        )
    else:
        cli.failln(
            f"{verdict.verdict.value} {verdict.message or ''}",
            result_label=verdict.reason.name if verdict.reason else "",
            hostname=report.hostname,
            port=report.port,
            con=con,
            use_icons=use_icons,
        )
    revocation = report.leaf.revocation if report.leaf else None
    if revocation is None:
        return
    message = f"OCSP {revocation.status.value}"
    if revocation.status == RevocationStatus.REVOKED:
        message += f" at {revocation.revocation_time.isoformat()}"
        if revocation.revocation_reason:
            message += f" ({revocation.revocation_reason})"
    if revocation.reason:
        message += f" {revocation.reason}"
    cli.outputln(
        message,
        result_level=REVOCATION_LEVEL[revocation.status],
        result_label=revocation.responder_url or "",
        hostname=report.hostname,
        port=report.port,
        con=con,
        use_icons=use_icons,
    )


def check(config: dict, console: Console = None, **kwargs) -> int:
    use_icons = any(
        n.get("type") == "console" and n.get("use_icons")
        for n in config.get("outputs", [])
    )
    checker = TrustCheck(config=config, console=console)
    reports = checker.check_many(
        config.get("targets", []), workers=config["defaults"].get("workers")
    )
    if console is not None:
        for report in reports:
            print_report(report, console, use_icons)

    for log_file in save_reports(config, reports, version=__version__):
        cli.outputln(
            log_file,
            aside="core",
            result_text="SAVED",
            result_icon=":floppy_disk:",
            con=console,
            use_icons=use_icons,
        )

    exit_code = 0
    if checker.trust_store.failures:
        logger.error(
            f"{len(checker.trust_store.failures)} trust sources could not be loaded"
        )
        exit_code = 1
    for report in reports:
        if report.error or not report.certificates:
            logger.error(f"{report.hostname}:{report.port} no certificate chain retrieved")
            exit_code = 1
    if kwargs.get("strict") and exit_code == 0:
        exit_code = 0 if all(is_valid(report) for report in reports) else 2
    return exit_code

