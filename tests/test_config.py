from datetime import date, datetime, timezone

import pytest

from ingestarr.core.config import CONFIG_ENV, find_config_path, load_settings, parse_settings
from ingestarr.core.errors import ConfigurationError


def _cfg(tmp_path, **extra):
    cfg = {"destination": {"path": str(tmp_path / "lib")}}
    cfg.update(extra)
    return cfg


def test_defaults_fill_the_gaps(tmp_path):
    s = parse_settings(_cfg(tmp_path))
    assert s.destination_path == tmp_path / "lib"
    assert s.subfolder_pattern == "%Y/%m"
    assert s.ledger_filename == "ingestarr-ledger.json"
    assert s.min_existing_length == 1024
    assert ".jpg" in s.formats.images
    assert ".mov" in s.formats.videos
    assert s.sources == ()
    assert not s.transcoding and not s.archiving


def test_extension_lists_are_normalised(tmp_path):
    s = parse_settings(_cfg(tmp_path, formats={"images": ["JPG", ".Heic", " "], "raw": "dng"}))
    assert s.formats.images == frozenset({".jpg", ".heic"})
    assert s.formats.raw == frozenset({".dng"})
    assert ".mp4" in s.formats.videos


def test_sources_keep_their_order(tmp_path):
    s = parse_settings(_cfg(tmp_path, sources=[
        {"path": str(tmp_path / "b"), "prefix": "B_", "timestamps": "UTC"},
        {"path": str(tmp_path / "a"), "prefix": "A_"},
    ]))
    assert [src.prefix for src in s.sources] == ["B_", "A_"]
    assert s.sources[0].timestamps == "utc"
    assert s.sources[1].timestamps == "local"


def test_tools_switch_features_on(tmp_path):
    s = parse_settings(_cfg(tmp_path, tools={"ffmpeg": "ffmpeg", "sevenzip": " "},
                            transcode={"enabled": True, "quality_factor": 23, "container": "MKV"}))
    assert s.transcoding
    assert not s.archiving
    assert s.tools.sevenzip is None
    assert s.transcode.quality_factor == "23"
    assert s.transcode.extension == ".mkv"


def test_cutoff_forms(tmp_path):
    assert parse_settings(_cfg(tmp_path, destination={
        "path": str(tmp_path), "effective_from": date(2020, 5, 1),
    })).effective_from == datetime(2020, 5, 1)
    assert parse_settings(_cfg(tmp_path, destination={
        "path": str(tmp_path), "effective_from": "2020-05-01T08:30:00",
    })).effective_from == datetime(2020, 5, 1, 8, 30)

    aware = datetime(2020, 5, 1, 8, 30, tzinfo=timezone.utc)
    s = parse_settings(_cfg(tmp_path, destination={"path": str(tmp_path), "effective_from": aware}))
    assert s.effective_from.tzinfo is None
    assert s.effective_from == aware.astimezone().replace(tzinfo=None)


@pytest.mark.parametrize("cfg", [
    {},
    {"destination": {"path": "  "}},
    {"destination": {"path": "/x", "ledger_filename": "sub/ledger.json"}},
    {"destination": {"path": "/x"}, "sources": [{"path": "/a", "timestamps": "sometimes"}]},
    {"destination": {"path": "/x"}, "sources": [{"path": "/a", "colour": "blue"}]},
    {"destination": {"path": "/x"}, "sources": {"path": "/a"}},
    {"destination": {"path": "/x"}, "archive": {"compression_level": 11}},
    {"destination": "/x"},
])
def test_invalid_config_is_a_configuration_error(cfg):
    with pytest.raises(ConfigurationError):
        parse_settings(cfg)


def test_load_from_env_var(tmp_path, monkeypatch):
    p = tmp_path / "custom.toml"
    p.write_text(
        '[destination]\n'
        f'path = "{(tmp_path / "lib").as_posix()}"\n'
        'effective_from = 2015-01-01\n'
        '\n'
        '[[sources]]\n'
        f'path = "{(tmp_path / "cam").as_posix()}"\n'
        'prefix = "A_"\n',
        encoding="utf-8",
    )
    monkeypatch.setenv(CONFIG_ENV, str(p))
    assert find_config_path() == p

    s = load_settings()
    assert s.effective_from == datetime(2015, 1, 1)
    assert s.sources[0].path == tmp_path / "cam"


def test_explicit_path_wins(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "env.toml"))
    assert find_config_path(str(tmp_path / "cli.toml")) == tmp_path / "cli.toml"


def test_no_config_anywhere(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    assert find_config_path() is None
    with pytest.raises(ConfigurationError):
        load_settings()


def test_missing_and_broken_files(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(str(tmp_path / "nope.toml"))
    bad = tmp_path / "bad.toml"
    bad.write_text("[destination\npath = 1", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(str(bad))
