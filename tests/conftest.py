from datetime import datetime

import pytest

from ingestarr.core.config import PhotoSource, Settings, ToolSettings


def tags(value):
    """TagReader stub: every file claims the same DateTimeOriginal."""
    return lambda p: {"EXIF:DateTimeOriginal": value}


def write_bytes(p, size=4096, fill=b"x"):
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(fill * size)
    return p


@pytest.fixture
def library(tmp_path):
    d = tmp_path / "library"
    d.mkdir()
    return d


@pytest.fixture
def camera(tmp_path):
    d = tmp_path / "camera"
    d.mkdir()
    return d


@pytest.fixture
def source(camera):
    return PhotoSource(
        path=camera,
        prefix="A_",
        copyright_to="Alex Example",
        license_full="Creative Commons Attribution 4.0",
        license_short="CC BY 4.0",
        copyright_url="https://creativecommons.org/licenses/by/4.0/",
    )


def make_settings(library, *sources, **overrides):
    values = dict(
        destination_path=library,
        subfolder_pattern="yyyy/MM",
        effective_from=datetime(2000, 1, 1),
        sources=tuple(sources),
        tools=ToolSettings(niceness=0),
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(library, source):
    return make_settings(library, source)
