import pytest

from trustcheck import config, constants


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_PATH", str(tmp_path / "home"))
    monkeypatch.delenv(config.ENV_INSECURE, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    conf = config.get_config()
    defaults = conf["defaults"]
    assert defaults["insecure"] is False
    assert defaults["timeout"] == constants.DEFAULT_TIMEOUT
    assert defaults["workers"] == constants.DEFAULT_WORKERS
    assert defaults["use_feed"] is True
    assert defaults["use_bootstrap"] is True
    assert defaults["cafile"] is None
    assert defaults["feed_url"] == constants.CCADB_FEED_URL
    assert conf["targets"] == []
    assert conf["outputs"][0]["type"] == "console"


def test_deep_merge():
    merged = config._deep_merge(
        {"defaults": {"timeout": 5, "insecure": False}, "outputs": [1]},
        {"defaults": {"timeout": 10}},
        {"outputs": [2]},
    )
    assert merged == {"defaults": {"timeout": 10, "insecure": False}, "outputs": [2]}


def test_deep_merge_rejects_non_dict():
    with pytest.raises(AttributeError):
        config._deep_merge({}, ["not", "a", "dict"])


def test_custom_values_win():
    conf = config.get_config(custom_values={"defaults": {"timeout": 12, "skip_ocsp": True}})
    assert conf["defaults"]["timeout"] == 12
    assert conf["defaults"]["skip_ocsp"] is True


def test_load_config_missing_file():
    assert config.load_config("does-not-exist.yaml") == {}


def test_project_file(tmp_path):
    (tmp_path / config.DEFAULT_CONFIG).write_text(
        "defaults:\n  timeout: 7\n  use_feed: false\ntargets:\n  - hostname: https://example.com:8443\n  - hostname: example.org\n    port: '9443'\n"
    )
    conf = config.get_config()
    assert conf["defaults"]["timeout"] == 7
    assert conf["defaults"]["use_feed"] is False
    assert conf["targets"] == [
        {"hostname": "example.com", "port": 8443},
        {"hostname": "example.org", "port": 9443},
    ]


def test_user_file_is_overridden_by_project_file(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    (home / config.DEFAULT_CONFIG).write_text("defaults:\n  timeout: 20\n  workers: 2\n")
    (tmp_path / config.DEFAULT_CONFIG).write_text("defaults:\n  timeout: 8\n")
    conf = config.get_config()
    assert conf["defaults"]["timeout"] == 8
    assert conf["defaults"]["workers"] == 2


@pytest.mark.parametrize(
    "value,expected",
    [("1", True), ("true", True), ("YES", True), ("0", False), ("no", False)],
)
def test_environment_insecure(monkeypatch, value, expected):
    monkeypatch.setenv(config.ENV_INSECURE, value)
    conf = config.get_config(custom_values={"defaults": {"insecure": not expected}})
    assert conf["defaults"]["insecure"] is expected


@pytest.mark.parametrize(
    "defaults",
    [{"timeout": 0}, {"timeout": -1}, {"workers": 0}, {"timeout": "soon"}],
)
def test_invalid_defaults(defaults):
    with pytest.raises(AttributeError):
        config.get_config(custom_values={"defaults": defaults})


@pytest.mark.parametrize(
    "target",
    [{"hostname": ""}, {"hostname": "not a host"}, {"hostname": "example.com", "port": 70000}],
)
def test_invalid_targets(target):
    with pytest.raises(AttributeError):
        config.get_config(custom_values={"targets": [target]})


def test_targets_are_merged_by_hostname_and_port(tmp_path):
    (tmp_path / config.DEFAULT_CONFIG).write_text(
        "targets:\n  - hostname: example.com\n    port: 443\n"
    )
    conf = config.get_config(
        custom_values={"targets": [{"hostname": "example.com", "port": 443}]}
    )
    assert conf["targets"] == [{"hostname": "example.com", "port": 443}]


def test_numeric_keys_are_strings(tmp_path):
    (tmp_path / "numbers.yaml").write_text("1: one\n2.5: two\n")
    assert config.load_config(str(tmp_path / "numbers.yaml")) == {"1": "one", "2.5": "two"}
