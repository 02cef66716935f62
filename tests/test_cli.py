import json

import pytest

from imgmin import cli
from imgmin.cache import PROCESS_CACHE


def test_parse_defaults():
    args = cli.parse_args([])
    assert args.root == "."
    assert args.out_dir == "dist"
    assert args.options == {}


def test_parse_builds_plugin_options():
    args = cli.parse_args(
        [
            "site",
            "--out-dir",
            "build",
            "--filter",
            r"\.png$",
            "--quiet",
            "--workers",
            "8",
            "--enable",
            "pngquant",
            "--disable",
            "svgo",
            "--codec-options",
            'mozjpeg={"quality": 60}',
        ]
    )

    assert args.root == "site"
    assert args.out_dir == "build"
    assert args.options == {
        "filter": r"\.png$",
        "verbose": False,
        "max_workers": 8,
        "pngquant": True,
        "svgo": False,
        "mozjpeg": {"quality": 60},
    }


def test_config_file_is_overridden_by_flags(tmp_path):
    config = tmp_path / "imgmin.json"
    config.write_text(json.dumps({"verbose": True, "svgo": {"multipass": True}, "webp": True}))

    args = cli.parse_args(["--config", str(config), "--quiet", "--disable", "webp"])

    assert args.options == {"verbose": False, "svgo": {"multipass": True}, "webp": False}


@pytest.mark.parametrize(
    "argv",
    [
        ["--codec-options", "pngquant"],
        ["--codec-options", "avif={}"],
        ["--codec-options", "pngquant={not json"],
        ["--enable", "avif"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(argv)
    assert excinfo.value.code == 2


def test_invalid_config_file(tmp_path):
    config = tmp_path / "imgmin.json"
    config.write_text("[1, 2]")
    with pytest.raises(SystemExit):
        cli.parse_args(["--config", str(config)])


def test_missing_config_file(tmp_path):
    with pytest.raises(SystemExit):
        cli.parse_args(["--config", str(tmp_path / "nope.json")])


def test_main_compresses_build_output(tmp_path, build_dir, no_tools):
    logo = (build_dir / "assets" / "logo.png").resolve()
    try:
        assert cli.main([str(tmp_path), "--quiet"]) == 0
        assert logo in PROCESS_CACHE
    finally:
        PROCESS_CACHE.clear()


def test_main_with_missing_output_directory(tmp_path):
    assert cli.main([str(tmp_path), "--out-dir", "nowhere"]) == 0
