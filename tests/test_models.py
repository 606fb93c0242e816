import datetime
import re
import pytest

from core.models import (
    FileRecord, FileCategory, FileBlob, MutationTicket, TicketKind, TicketStatus,
    categorize, generate_storage_name, file_extension,
)
from core.utils import format_file_size, format_date, display_name


# --- categorize ---
@pytest.mark.parametrize("mime_type, expected", [
    ("image/png", FileCategory.IMAGE),
    ("video/mp4", FileCategory.VIDEO),
    ("audio/mpeg", FileCategory.AUDIO),
    ("application/pdf", FileCategory.DOCUMENT),
    ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", FileCategory.DOCUMENT),
    ("application/zip", FileCategory.ARCHIVE),
    ("application/x-archive", FileCategory.ARCHIVE),
    ("application/javascript", FileCategory.CODE),
    ("application/json", FileCategory.CODE),
    ("text/html", FileCategory.CODE),
    ("text/plain", FileCategory.OTHER),
    ("", FileCategory.OTHER),
    (None, FileCategory.OTHER),
    # prefix checks run before substring checks
    ("video/x-something+json", FileCategory.VIDEO),
    ("image/svg+xml-document", FileCategory.IMAGE),
    # pdf/document beat zip
    ("application/pdf+zip", FileCategory.DOCUMENT),
])
def test_categorize(mime_type, expected):
    assert categorize(mime_type) is expected


def test_category_plural_labels():
    assert FileCategory.IMAGE.plural == "Images"
    assert FileCategory.AUDIO.plural == "Audio"
    assert FileCategory.OTHER.plural == "Others"


# --- FileRecord ---
def test_file_record_defaults_when_metadata_missing():
    record = FileRecord(id="1", name="u1/readme")
    assert record.size_bytes == 0
    assert record.mime_type == ""
    assert record.category is FileCategory.OTHER
    assert record.type_label == "File"


def test_file_record_derived_fields():
    record = FileRecord(id="1", name="u1/1700000000000-abc.pdf", mime_type="application/pdf")
    assert record.display_name == "1700000000000-abc.pdf"
    assert record.owner_id == "u1"
    assert record.type_label == "PDF"


def test_from_storage_item_prefixes_folder():
    item = {
        "id": "abc-123",
        "name": "1700000000000-x1y2.png",
        "updated_at": "2024-01-05T10:00:00.000Z",
        "metadata": {"size": 2048, "mimetype": "image/png"},
    }
    record = FileRecord.from_storage_item(item, "u1")
    assert record.name == "u1/1700000000000-x1y2.png"
    assert record.size_bytes == 2048
    assert record.mime_type == "image/png"
    assert record.updated_at == datetime.datetime(2024, 1, 5, 10, 0, tzinfo=datetime.timezone.utc)


def test_from_storage_item_handles_null_metadata():
    record = FileRecord.from_storage_item({"id": "1", "name": "a.bin", "metadata": None}, "u1")
    assert record.size_bytes == 0
    assert record.mime_type == ""


@pytest.mark.parametrize("item", [
    {"id": None, "name": "subfolder", "metadata": None},
    {"id": "1", "name": ".emptyFolderPlaceholder", "metadata": {}},
])
def test_from_storage_item_skips_folders_and_placeholders(item):
    assert FileRecord.from_storage_item(item, "u1") is None


# --- storage names ---
def test_generate_storage_name_format():
    name = generate_storage_name("u1", "holiday.photo.JPG", now_ms=1700000000000)
    assert re.fullmatch(r"u1/1700000000000-[0-9a-z]{11}\.JPG", name)


def test_generate_storage_name_is_unique():
    names = {generate_storage_name("u1", "a.txt", now_ms=1) for _ in range(50)}
    assert len(names) == 50


def test_file_extension_without_dot_uses_whole_name():
    assert file_extension("Makefile") == "Makefile"
    assert file_extension("archive.tar.gz") == "gz"


# --- FileBlob ---
def test_file_blob_size_from_path(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"12345")
    blob = FileBlob(name="data.bin", path=str(path))
    assert blob.size == 5
    assert blob.read() == b"12345"


def test_file_blob_requires_a_source():
    with pytest.raises(ValueError):
        FileBlob(name="empty.txt")


# --- MutationTicket ---
def test_ticket_has_single_terminal_outcome():
    ticket = MutationTicket(kind=TicketKind.DELETE, target="1")
    ticket.fail("boom")
    assert ticket.status is TicketStatus.FAILED
    with pytest.raises(ValueError):
        ticket.resolve()


# --- formatting ---
@pytest.mark.parametrize("size, expected", [
    (0, "0 Bytes"),
    (1, "1 Bytes"),
    (1023, "1023 Bytes"),
    (1024, "1 KB"),
    (1536, "1.5 KB"),
    (1048576, "1 MB"),
    (5 * 1024 ** 3, "5 GB"),
    (3 * 1024 ** 4, "3072 GB"),
    (1234567, "1.18 MB"),
])
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_format_date():
    value = datetime.datetime(2024, 1, 5, 15, 4)
    assert format_date(value) == "Jan 5, 2024, 03:04 PM"
    assert format_date(None) == "Unknown"


def test_display_name():
    assert display_name("u1/folder/file.txt") == "file.txt"
