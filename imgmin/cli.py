from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from .codecs import codec_names
from .plugin import ImageminPlugin


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(message)s" if not args.debug else "%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    plugin = ImageminPlugin(args.options)
    plugin.config_resolved(args.root, args.out_dir)
    plugin.close_bundle()
    return 0


def parse_args(args: list[str]) -> argparse.Namespace:
    names = codec_names()
    parser = argparse.ArgumentParser(
        prog="imgmin",
        description="Recompress the images of a build output directory in place.",
    )
    parser.add_argument("root", nargs="?", default=".", help="project root")
    parser.add_argument("--out-dir", default="dist", help="build output, relative to root")
    parser.add_argument("--config", type=Path, help="JSON file with plugin options")
    parser.add_argument("--filter", help="regular expression matched against file paths")
    parser.add_argument("--quiet", action="store_true", help="do not print the size report")
    parser.add_argument("--workers", type=int, help="cap on concurrent files")
    parser.add_argument("--enable", action="append", default=[], choices=names, metavar="CODEC")
    parser.add_argument("--disable", action="append", default=[], choices=names, metavar="CODEC")
    parser.add_argument(
        "--codec-options",
        action="append",
        default=[],
        metavar="CODEC=JSON",
        help=f"options for one codec ({', '.join(names)})",
    )
    parser.add_argument("--debug", action="store_true")
    parsed = parser.parse_args(args)
    try:
        parsed.options = build_options(parsed, names)
    except ValueError as exc:
        parser.error(str(exc))
    return parsed


def build_options(parsed: argparse.Namespace, names: list[str]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if parsed.config is not None:
        options.update(load_config(parsed.config))
    if parsed.filter is not None:
        options["filter"] = parsed.filter
    if parsed.quiet:
        options["verbose"] = False
    if parsed.workers is not None:
        options["max_workers"] = parsed.workers
    for name in parsed.enable:
        options[name] = True
    for name in parsed.disable:
        options[name] = False
    for item in parsed.codec_options:
        name, sep, raw = item.partition("=")
        if not sep or name not in names:
            raise ValueError(f"expected CODEC=JSON with CODEC in {', '.join(names)}: {item}")
        try:
            options[name] = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON for {name}: {exc}") from exc
    return options


def load_config(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data
