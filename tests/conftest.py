import io

import pytest
from PIL import Image

from imgmin import codecs
from imgmin.cache import MtimeCache


def image_bytes(fmt: str, size=(32, 32), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    return image_bytes


@pytest.fixture
def cache():
    return MtimeCache()


@pytest.fixture
def no_tools(monkeypatch):
    """Force every codec onto its Pillow fallback."""
    monkeypatch.setattr(codecs, "get_tool_executable", lambda names: None)


@pytest.fixture
def build_dir(tmp_path, make_image):
    dist = tmp_path / "dist"
    (dist / "assets" / "icons").mkdir(parents=True)
    (dist / "index.html").write_text("<html></html>")
    (dist / "assets" / "logo.png").write_bytes(make_image("PNG", size=(64, 64)))
    (dist / "assets" / "photo.JPG").write_bytes(make_image("JPEG", size=(64, 64)))
    (dist / "assets" / "icons" / "dot.svg").write_text(
        '<svg xmlns="http://www.w3.org/2000/svg">\n  <!-- dot -->\n  <circle r="1"/>\n</svg>\n'
    )
    return dist
