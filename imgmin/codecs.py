from __future__ import annotations

from dataclasses import dataclass, field
import io
import logging
import os
from pathlib import Path
import re
import shutil
import subprocess
import sys
import tempfile
from threading import Lock
from types import MappingProxyType
from typing import Any, Callable, Mapping

from PIL import Image, ImageSequence

from .errors import CodecError

logger = logging.getLogger(__name__)

WINDOWS_CREATIONFLAGS = (
    getattr(subprocess, "CREATE_NO_WINDOW", 0) if sys.platform.startswith("win") else 0
)
BIN_DIR_ENV = "IMGMIN_BIN_DIR"
_TOOL_CACHE: dict[tuple[str, ...], str | None] = {}
_TOOL_LOCK = Lock()

Runner = Callable[[bytes, Mapping[str, Any]], bytes]


@dataclass(frozen=True)
class CodecAdapter:
    name: str
    runner: Runner
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def compress(self, data: bytes) -> bytes:
        if not isinstance(self.options, Mapping):
            raise CodecError(self.name, f"options must be a mapping, got {self.options!r}")
        return self.runner(data, self.options)


@dataclass(frozen=True)
class CodecSpec:
    name: str
    enabled: bool
    runner: Runner


def detect_format(data: bytes) -> str | None:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    head = data[:1024].lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    if head.startswith(b"<") and b"<svg" in head:
        return "svg"
    return None


def compress_gif(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) != "gif":
        return data
    gifsicle = get_tool_executable(["gifsicle"])
    if gifsicle:
        command = [gifsicle, "--no-warnings", f"-O{options.get('optimization_level', 3)}"]
        if options.get("interlaced"):
            command.append("--interlace")
        if options.get("colors") is not None:
            command += ["--colors", str(options["colors"])]
        if options.get("lossy") is not None:
            command.append(f"--lossy={options['lossy']}")
        return run_tool("gifsicle", command, data)
    with open_image("gifsicle", data) as image:
        frames = [frame.copy() for frame in ImageSequence.Iterator(image)]
        return save_gif(frames, image)


def save_gif(frames: list[Image.Image], original: Image.Image) -> bytes:
    duration = original.info.get("duration", 0)
    loop = original.info.get("loop", 0)
    return encode_image(
        "gifsicle",
        frames[0],
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=duration,
        loop=loop,
        optimize=True,
    )


def compress_mozjpeg(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) != "jpeg":
        return data
    quality = options.get("quality", 75)
    progressive = options.get("progressive", True)
    cjpeg = get_tool_executable(["cjpeg", "mozjpeg"])
    if cjpeg:
        command = [cjpeg, "-quality", str(quality), "-optimize"]
        if progressive:
            command.append("-progressive")
        return run_tool("mozjpeg", command, data)
    with open_image("mozjpeg", data) as image:
        return encode_image(
            "mozjpeg", image, format="JPEG", quality=quality, optimize=True, progressive=progressive
        )


def compress_pngquant(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) != "png":
        return data
    quality = options.get("quality")
    pngquant = get_tool_executable(["pngquant"])
    if pngquant:
        command = [pngquant, "--speed", str(options.get("speed", 4))]
        if options.get("strip", True):
            command.append("--strip")
        if quality is not None:
            command += ["--quality", format_pngquant_quality(quality)]
        dithering = options.get("dithering")
        if dithering is False:
            command.append("--nofs")
        elif dithering is not None:
            command.append(f"--floyd={dithering}")
        command.append("-")
        result = run_command(command, data)
        # 98: result larger than input, 99: quality target not reached.
        if result.returncode in (98, 99):
            return data
        return check_result("pngquant", result)
    with open_image("pngquant", data) as image:
        colors = pngquant_colors(quality)
        quantized = quantize_image(image, colors)
        return encode_image("pngquant", quantized, format="PNG", optimize=True, compress_level=9)


def format_pngquant_quality(quality: Any) -> str:
    if isinstance(quality, (list, tuple)) and len(quality) == 2:
        low, high = quality
        return f"{round(low * 100)}-{round(high * 100)}"
    return str(quality)


def pngquant_colors(quality: Any) -> int:
    if isinstance(quality, (list, tuple)) and quality:
        quality = quality[-1]
    if isinstance(quality, (int, float)) and not isinstance(quality, bool):
        fraction = quality if quality <= 1 else quality / 100
        return max(16, min(256, int(256 * fraction)))
    return 256


def quantize_image(image: Image.Image, colors: int) -> Image.Image:
    fast_octree = 2
    median_cut = 0
    if image.mode in {"RGBA", "LA"} or "transparency" in image.info:
        return image.convert("RGBA").quantize(colors=colors, method=fast_octree)
    return image.convert("RGB").quantize(colors=colors, method=median_cut)


def compress_optipng(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) != "png":
        return data
    level = options.get("optimization_level", 3)
    strip = options.get("strip", True)
    tool = get_tool_executable(["oxipng", "optipng"])
    if tool:
        if "oxipng" in Path(tool).name.lower():
            command = [tool, "-q", "-o", str(level)]
            if strip:
                command += ["--strip", "safe"]
            return run_file_tool("optipng", command, data, ".png", ["--out", "{output}", "{input}"])
        command = [tool, "-quiet", f"-o{level}"]
        if strip:
            command += ["-strip", "all"]
        return run_file_tool("optipng", command, data, ".png", ["-out", "{output}", "{input}"])
    with open_image("optipng", data) as image:
        return encode_image("optipng", image, format="PNG", optimize=True, compress_level=9)


def compress_svg(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) != "svg":
        return data
    svgo = get_tool_executable(["svgo"])
    if svgo:
        command = [svgo, "--input", "-", "--output", "-"]
        if options.get("multipass"):
            command.append("--multipass")
        return run_tool("svgo", command, data)
    return minify_svg(data)


_SVG_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_SVG_BREAK_RE = re.compile(r">\s*\n\s*<")


def minify_svg(data: bytes) -> bytes:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CodecError("svgo", f"svg is not valid utf-8: {exc}") from exc
    text = _SVG_COMMENT_RE.sub("", text)
    text = _SVG_BREAK_RE.sub("><", text)
    return text.strip().encode("utf-8")


def compress_webp(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) not in {"png", "jpeg", "webp"}:
        return data
    quality = options.get("quality", 75)
    method = options.get("method", 4)
    lossless = options.get("lossless", False)
    cwebp = get_tool_executable(["cwebp"])
    if cwebp:
        command = [cwebp, "-quiet", "-q", str(quality), "-m", str(method), "-metadata", "none"]
        if lossless:
            command.append("-lossless")
        return run_file_tool("webp", command, data, ".img", ["{input}", "-o", "{output}"])
    with open_image("webp", data) as image:
        if image.mode not in {"RGB", "RGBA"}:
            has_alpha = image.mode in {"LA", "PA"} or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        return encode_image(
            "webp", image, format="WEBP", quality=quality, method=method, lossless=lossless
        )


def compress_jpegtran(data: bytes, options: Mapping[str, Any]) -> bytes:
    if detect_format(data) != "jpeg":
        return data
    progressive = options.get("progressive", True)
    jpegtran = get_tool_executable(["jpegtran"])
    if jpegtran:
        command = [jpegtran, "-copy", str(options.get("copy", "none")), "-optimize"]
        if progressive:
            command.append("-progressive")
        if options.get("arithmetic"):
            command.append("-arithmetic")
        return run_tool("jpegtran", command, data)
    with open_image("jpegtran", data) as image:
        return encode_image(
            "jpegtran",
            image,
            format="JPEG",
            quality="keep",
            subsampling="keep",
            optimize=True,
            progressive=progressive,
        )


def open_image(codec: str, data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise CodecError(codec, f"cannot decode image: {exc}") from exc
    return image


def encode_image(codec: str, image: Image.Image, **params: Any) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, **params)
    except (OSError, ValueError, TypeError) as exc:
        raise CodecError(codec, f"cannot encode image: {exc}") from exc
    return buffer.getvalue()


def run_tool(codec: str, command: list[str], data: bytes) -> bytes:
    return check_result(codec, run_command(command, data))


def run_file_tool(
    codec: str,
    command: list[str],
    data: bytes,
    suffix: str,
    io_args: list[str],
) -> bytes:
    with tempfile.TemporaryDirectory(prefix="imgmin_") as work_dir:
        source = Path(work_dir) / f"input{suffix}"
        output = Path(work_dir) / f"output{suffix}"
        source.write_bytes(data)
        args = [arg.format(input=source, output=output) for arg in io_args]
        check_result(codec, run_command(command + args))
        if not output.exists():
            raise CodecError(codec, "no output written")
        return output.read_bytes()


def check_result(codec: str, result: subprocess.CompletedProcess[bytes]) -> bytes:
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", "replace").strip()
        raise CodecError(codec, f"exited with status {result.returncode}", stderr)
    return result.stdout


def run_command(command: list[str], data: bytes | None = None) -> subprocess.CompletedProcess[bytes]:
    logger.debug("running %s", " ".join(command))
    try:
        return subprocess.run(
            command, input=data, capture_output=True, creationflags=WINDOWS_CREATIONFLAGS
        )
    except OSError as exc:
        raise CodecError(Path(command[0]).name, f"cannot run tool: {exc}") from exc


def get_tool_executable(names: list[str]) -> str | None:
    key = tuple(names)
    with _TOOL_LOCK:
        if key in _TOOL_CACHE:
            return _TOOL_CACHE[key]
    resolved = _find_tool(names)
    with _TOOL_LOCK:
        _TOOL_CACHE[key] = resolved
    return resolved


def _find_tool(names: list[str]) -> str | None:
    bin_dir = os.environ.get(BIN_DIR_ENV)
    if bin_dir:
        for name in names:
            for path in (Path(bin_dir) / name, Path(bin_dir) / f"{name}.exe"):
                if path.exists():
                    return str(path)
    for name in names:
        system_path = shutil.which(name)
        if system_path:
            return system_path
    return None


def clear_tool_cache() -> None:
    with _TOOL_LOCK:
        _TOOL_CACHE.clear()


_TOOLS = {
    "gifsicle": ["gifsicle"],
    "mozjpeg": ["cjpeg", "mozjpeg"],
    "pngquant": ["pngquant"],
    "optipng": ["oxipng", "optipng"],
    "svgo": ["svgo"],
    "webp": ["cwebp"],
    "jpegtran": ["jpegtran"],
}


def get_engine_status(pipeline: tuple[CodecAdapter, ...]) -> dict[str, str]:
    status = {}
    for adapter in pipeline:
        tool = get_tool_executable(_TOOLS.get(adapter.name, [adapter.name]))
        status[adapter.name] = Path(tool).name if tool else "Pillow"
    if "svgo" in status and status["svgo"] == "Pillow":
        status["svgo"] = "builtin"
    return status


_CODEC_REGISTRY: tuple[CodecSpec, ...] = (
    CodecSpec("gifsicle", True, compress_gif),
    CodecSpec("mozjpeg", False, compress_mozjpeg),
    CodecSpec("pngquant", False, compress_pngquant),
    CodecSpec("optipng", True, compress_optipng),
    CodecSpec("svgo", True, compress_svg),
    CodecSpec("webp", False, compress_webp),
    CodecSpec("jpegtran", True, compress_jpegtran),
)


def get_codec_registry() -> tuple[CodecSpec, ...]:
    return _CODEC_REGISTRY


def codec_names() -> list[str]:
    return [codec.name for codec in _CODEC_REGISTRY]


def build_pipeline(
    settings: Mapping[str, Any],
    registry: tuple[CodecSpec, ...] | None = None,
) -> tuple[CodecAdapter, ...]:
    """Select the enabled codecs, in registration order.

    A setting of ``False`` drops the codec, ``True`` or ``None`` enables it
    with its default options, anything else is handed to it as options
    without inspection. Codecs absent from ``settings`` use their default
    enabled state.
    """
    registry = get_codec_registry() if registry is None else registry
    known = {codec.name for codec in registry}
    for name in settings:
        if name not in known:
            logger.debug("ignoring unknown codec setting %r", name)
    pipeline = []
    for codec in registry:
        setting = settings.get(codec.name, codec.enabled)
        if setting is False:
            continue
        options = MappingProxyType({}) if setting is True or setting is None else setting
        logger.debug("%s: enabled", codec.name)
        pipeline.append(CodecAdapter(codec.name, codec.runner, options))
    return tuple(pipeline)
