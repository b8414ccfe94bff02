import os
from datetime import datetime, timedelta, timezone

from ingestarr.services.dates import (
    date_from_tags,
    local_view,
    parse_exif_dt,
    resolve_capture_date,
)


def test_parse_exif_formats():
    assert parse_exif_dt("2024:07:08 08:00:38") == datetime(2024, 7, 8, 8, 0, 38)
    assert parse_exif_dt("2024:07:08 08:00:38.123") == datetime(2024, 7, 8, 8, 0, 38)
    assert parse_exif_dt("2024:07:08 08:00:38Z") == datetime(2024, 7, 8, 8, 0, 38, tzinfo=timezone.utc)
    assert parse_exif_dt("2024:07:08 08:00:38+02:00").utcoffset() == timedelta(hours=2)
    assert parse_exif_dt("2024:07:08 08:00:38-0500").utcoffset() == timedelta(hours=-5)
    assert parse_exif_dt("2024-07-08T08:00:38") == datetime(2024, 7, 8, 8, 0, 38)


def test_parse_rejects_sentinels_and_garbage():
    assert parse_exif_dt(None) is None
    assert parse_exif_dt("") is None
    assert parse_exif_dt("0000:00:00 00:00:00") is None
    assert parse_exif_dt("yesterday") is None
    assert parse_exif_dt("2024:13:45 08:00:38") is None


def test_digitized_wins_over_original_and_modified():
    meta = {
        "EXIF:ModifyDate": "2024:01:03 00:00:00",
        "EXIF:DateTimeOriginal": "2024:01:02 00:00:00",
        "EXIF:CreateDate": "2024:01:01 00:00:00",
    }
    assert date_from_tags(meta) == datetime(2024, 1, 1)


def test_blank_tags_fall_through_to_next_key():
    meta = {"EXIF:CreateDate": "0000:00:00 00:00:00", "QuickTime:CreateDate": "2023:05:06 07:08:09"}
    assert date_from_tags(meta) == datetime(2023, 5, 6, 7, 8, 9)
    assert date_from_tags({}) is None


def test_naive_tag_read_as_local(tmp_path):
    p = tmp_path / "a.jpg"
    p.write_bytes(b"x")
    dt = resolve_capture_date(p, "local", lambda _: {"EXIF:DateTimeOriginal": "2024:03:01 10:00:00"})
    assert dt.tzinfo is not None
    assert local_view(dt) == datetime(2024, 3, 1, 10, 0)


def test_naive_tag_read_as_utc(tmp_path):
    p = tmp_path / "a.jpg"
    p.write_bytes(b"x")
    dt = resolve_capture_date(p, "utc", lambda _: {"EXIF:DateTimeOriginal": "2024:03:01 10:00:00"})
    assert dt == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert local_view(dt) == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)


def test_tag_offset_is_kept_whatever_the_source_kind(tmp_path):
    p = tmp_path / "a.jpg"
    p.write_bytes(b"x")
    dt = resolve_capture_date(p, "utc", lambda _: {"EXIF:DateTimeOriginal": "2024:03:01 10:00:00+02:00"})
    assert dt.astimezone(timezone.utc) == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def test_reader_failure_falls_back_to_mtime(tmp_path):
    p = tmp_path / "a.mov"
    p.write_bytes(b"x")
    stamp = datetime(2022, 6, 15, 12, 30).timestamp()
    os.utime(p, (stamp, stamp))

    def broken(_):
        raise RuntimeError("exiftool exploded")

    dt = resolve_capture_date(p, "local", broken)
    assert dt.tzinfo is not None
    assert local_view(dt) == datetime(2022, 6, 15, 12, 30)


def test_no_date_tags_falls_back_to_mtime(tmp_path):
    p = tmp_path / "a.png"
    p.write_bytes(b"x")
    stamp = datetime(2021, 1, 2, 3, 4, 5).timestamp()
    os.utime(p, (stamp, stamp))
    assert local_view(resolve_capture_date(p, "utc", lambda _: {})) == datetime(2021, 1, 2, 3, 4, 5)
