import logging
from os import environ, path
from copy import deepcopy
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from .. import util
from ..models import ConfigDefaults, ConfigTarget

__module__ = "trustcheck.config"

logger = logging.getLogger(__name__)
DEFAULT_CONFIG = ".trustcheck.yaml"
CONFIG_PATH = f"{path.expanduser('~')}/.config/trustcheck"
ENV_INSECURE = "TRUSTCHECK_INSECURE"
TRUTHY = ["1", "true", "yes", "on"]

DEFAULT_VALUES = b"""
---
defaults:
  insecure: false
  timeout: 5
  feed_url: https://ccadb.my.salesforce-sites.com/mozilla/IncludedRootsDistrustTLSSSLPEMCSV?TrustBitsInclude=Websites
  use_feed: true
  use_bootstrap: true
  cafile:
  skip_ocsp: false
  workers: 4

outputs:
  - type: console
    use_icons: false

targets: []
"""


def force_keys_as_str(self, node, deep=False):
    data = self.old_construct_mapping(node, deep)
    return {
        (str(key) if isinstance(key, (int, float)) else key): data[key] for key in data
    }


yaml.SafeLoader.old_construct_mapping = yaml.SafeLoader.construct_mapping
yaml.SafeLoader.construct_mapping = force_keys_as_str


def _deep_merge(*args) -> dict:
    assert len(args) >= 2, "_deep_merge requires at least two dicts to merge"
    result = deepcopy(args[0])
    if not isinstance(result, dict):
        raise AttributeError(
            f"_deep_merge only takes dict arguments, got {type(result)} {result}"
        )
    for merge_dict in args[1:]:
        if not isinstance(merge_dict, dict):
            raise AttributeError(
                f"_deep_merge only takes dict arguments, got {type(merge_dict)} {merge_dict}"
            )
        for key, merge_val in merge_dict.items():
            result_val = result.get(key)
            if isinstance(result_val, dict) and isinstance(merge_val, dict):
                result[key] = _deep_merge(result_val, merge_val)
            else:
                result[key] = deepcopy(merge_val)
    return result


def _merge_targets(*args) -> list:
    result = []
    index = {}
    for targets in args:
        for target in targets or []:
            key = (target.get("hostname"), target.get("port"))
            if key in index:
                result[index[key]].update(target)
                continue
            index[key] = len(result)
            result.append(deepcopy(target))
    return result


def _validate_config(combined_config: dict) -> dict:
    try:
        combined_config["defaults"] = ConfigDefaults(
            **{
                key: value
                for key, value in (combined_config.get("defaults") or {}).items()
                if value is not None or key == "cafile"
            }
        ).model_dump()
    except ValidationError as err:
        raise AttributeError(f"invalid defaults configuration: {err}") from err

    targets = []
    for target in combined_config.get("targets") or []:
        hostname = target.get("hostname")
        if not hostname or not isinstance(hostname, str):
            raise AttributeError("Missing hostname")
        try:
            hostname, port = util.parse_target(hostname)
        except ValueError as err:
            raise AttributeError(str(err)) from err
        if isinstance(target.get("port"), str):
            target["port"] = int(target.get("port"))
        if target.get("port"):  # falsey type coercion
            port = target["port"]
        try:
            targets.append(ConfigTarget(hostname=hostname, port=port).model_dump())
        except ValidationError as err:
            raise AttributeError(f"invalid target {hostname}: {err}") from err
    combined_config["targets"] = targets
    return combined_config


def _apply_environment(config: dict) -> dict:
    value = environ.get(ENV_INSECURE)
    if value is not None:
        config["defaults"]["insecure"] = value.strip().lower() in TRUTHY
        logger.debug(f"{ENV_INSECURE}={value} sets insecure to {config['defaults']['insecure']}")
    return config


def combine_configs(user_conf: dict, project_conf: dict, custom_conf: dict) -> dict:
    default_values = default_config()
    ret_config = {
        "defaults": _deep_merge(
            default_values.get("defaults", {}),
            user_conf.get("defaults") or {},
            project_conf.get("defaults") or {},
            custom_conf.get("defaults") or {},
        ),
        "outputs": custom_conf.get("outputs")
        or project_conf.get("outputs")
        or user_conf.get("outputs")
        or default_values.get("outputs", []),
        "targets": _merge_targets(
            user_conf.get("targets"),
            project_conf.get("targets"),
            custom_conf.get("targets"),
        ),
    }
    return _apply_environment(_validate_config(ret_config))


def get_config(
    custom_values: Union[dict, None] = None, filename: str = DEFAULT_CONFIG
) -> dict:
    user_config = load_config(path.join(CONFIG_PATH, DEFAULT_CONFIG))
    project_config = load_config(filename)
    return combine_configs(user_config, project_config, custom_values or {})


def default_config() -> dict:
    return yaml.safe_load(DEFAULT_VALUES)


def load_config(filename: str = DEFAULT_CONFIG) -> dict:
    config_path = Path(filename)
    if config_path.is_file():
        logger.debug(config_path.absolute())
        return yaml.safe_load(config_path.read_text(encoding="utf8")) or {}
    return {}
