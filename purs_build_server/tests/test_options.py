import json
import os
from pathlib import Path

import pytest

from ..server.errors import ConfigError
from ..server.options import CONFIG_FILE, BuildOptions, load_options, normalize_key


def test_defaults(tmp_path: Path):
    options = load_options(tmp_path)

    assert options.context == str(tmp_path)
    assert options.compiler == "psc"
    assert options.bundle_namespace == "PS"
    assert options.output_dir == os.path.join(str(tmp_path), "output")
    assert options.module_output("Data.Maybe") == os.path.join(
        str(tmp_path), "output", "Data.Maybe", "index.js"
    )
    assert options.ide_retries == 9
    assert not options.ide_colors


def test_config_file_and_overrides(tmp_path: Path):
    (tmp_path / CONFIG_FILE).write_text(
        json.dumps({"pscArgs": {"censorWarnings": True}, "bundle": True, "output": "build"})
    )

    options = load_options(tmp_path, {"output": "dist"})

    assert options.compiler_args == {"censorWarnings": True}
    assert options.bundle
    assert options.output == "dist"


def test_unknown_keys_are_rejected(tmp_path: Path):
    (tmp_path / CONFIG_FILE).write_text(json.dumps({"notAnOption": 1}))

    with pytest.raises(ConfigError, match="notAnOption"):
        load_options(tmp_path)


def test_malformed_config(tmp_path: Path):
    (tmp_path / CONFIG_FILE).write_text("{")

    with pytest.raises(ConfigError):
        load_options(tmp_path)


def test_colors_follow_psa():
    assert BuildOptions(compiler="psa").ide_colors
    assert not BuildOptions(compiler="psc").ide_colors
    assert BuildOptions().merge({"psc": "psa"}).ide_colors
    assert not BuildOptions().merge({"psc": "psa", "pscIdeColors": False}).ide_colors


def test_normalize_key():
    assert normalize_key("bundleOutput") == "bundle_output"
    assert normalize_key("pscBundleArgs") == "bundler_args"
    assert normalize_key("ide_args") == "ide_args"
