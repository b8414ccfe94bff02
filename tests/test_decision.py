import pytest

from ingestarr.schemas.ledger import ImportRecord
from ingestarr.services.decision import (
    SKIP_ALREADY_COPIED,
    SKIP_MISSING_FROM_DISK,
    Action,
    decide,
    on_disk_length,
)


def _rec(length):
    return ImportRecord(destination_filename="A_IMG_0001.JPG", source_filename="IMG_0001.JPG",
                        prefix="A_", original_length=length)


def test_new_file_is_processed():
    d = decide(False, _rec(5000), -1)
    assert d.action is Action.PROCESS and not d.forced


def test_real_copy_is_skipped_with_or_without_ledger():
    assert decide(True, _rec(5000), 5000).reason == SKIP_ALREADY_COPIED
    # ledger lost (crash before flush) but the copy is there
    assert decide(False, _rec(5000), 5000).reason == SKIP_ALREADY_COPIED


def test_missing_output_with_ledger_entry_is_forced():
    # crash between ledger flush and the output landing: nothing on disk
    d = decide(True, _rec(5000), 0)
    assert d.process and d.forced


def test_missing_output_of_tiny_source_is_skipped():
    d = decide(True, _rec(800), 0)
    assert d.action is Action.SKIP
    assert d.reason == SKIP_MISSING_FROM_DISK


def test_stub_with_ledger_entry_is_forced():
    d = decide(True, _rec(5000), 12)
    assert d.process and d.forced


def test_stub_of_tiny_source_is_left_alone():
    # known approximation: a genuinely tiny source can't be told apart from a stub
    d = decide(True, _rec(800), 800)
    assert d.action is Action.SKIP
    assert d.reason == SKIP_MISSING_FROM_DISK


def test_stub_without_ledger_entry_is_processed():
    d = decide(False, _rec(5000), 0)
    assert d.process and not d.forced


@pytest.mark.parametrize("length,on_disk", [(1024, False), (1025, True)])
def test_threshold_boundary(length, on_disk):
    d = decide(True, _rec(5000), length)
    assert (d.reason == SKIP_ALREADY_COPIED) is on_disk
    assert d.forced is (not on_disk)


def test_custom_threshold():
    assert decide(True, _rec(50), 20, threshold=10).reason == SKIP_ALREADY_COPIED


def test_on_disk_length(tmp_path):
    p = tmp_path / "f.bin"
    assert on_disk_length(p) == 0
    p.write_bytes(b"abc")
    assert on_disk_length(p) == 3
    assert on_disk_length(tmp_path) == 0
