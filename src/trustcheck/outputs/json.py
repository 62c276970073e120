import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from . import parse_filename
from ..models import HostReport

__module__ = "trustcheck.outputs.json"

logger = logging.getLogger(__name__)


def save_to(template_filename: str, data, **kwargs) -> str:
    filename = parse_filename(template_filename, **kwargs)
    json_path = Path(filename)
    Path(json_path.parent).mkdir(parents=True, exist_ok=True)
    json_path.write_text(
        json.dumps(
            data,
            sort_keys=True,
            indent=4,
            default=str,
        ),
        encoding="utf8",
    )
    logger.info(f"saved {json_path.as_posix()}")
    return json_path.as_posix()


def save_reports(config: dict, reports: list[HostReport], **kwargs) -> list[str]:
    files = []
    json_output = [
        n["path"]
        for n in config.get("outputs", [])
        if n.get("type") == "json" and n.get("path")
    ]
    for json_file in json_output:
        files.append(
            save_to(
                template_filename=json_file,
                data={
                    "generator": "trustcheck",
                    "version": kwargs.get("version"),
                    "date": datetime.now(timezone.utc)
                    .replace(microsecond=0, tzinfo=None)
                    .isoformat(),
                    "queries": [report.to_dict() for report in reports],
                },
                **kwargs,
            )
        )
    return files
