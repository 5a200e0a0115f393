"""Tests for FileService: uploads, listing, tags, search, deletes and bulk ops."""

import logging
from datetime import timedelta, timezone

import pytest
import sqlalchemy.exc

from filevault.core.clock import as_utc
from filevault.core.config import settings
from filevault.exceptions import (
    ExternalStoreFailure,
    FolderNotFoundError,
    StoredFileNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from filevault.models.file import StoredFile
from filevault.repositories.file_repository import ALL_FOLDERS
from filevault.services.file_service import FileService, normalize_tags
from filevault.services.folder_service import FolderService
from tests.conftest import make_user


@pytest.fixture()
def owner(db):
    return make_user(db)


@pytest.fixture()
def service(db, store):
    return FileService(db, store)


class TestNormalizeTags:

    def test_lowercases_trims_and_dedupes(self):
        assert normalize_tags([" Work ", "work", "2024-trip"]) == ["work", "2024-trip"]

    def test_blank_tags_are_dropped(self):
        assert normalize_tags(["", "  "]) == []

    @pytest.mark.parametrize("tag", ["has space", "under_score", "émoji", "x" * 51])
    def test_invalid_tags_rejected(self, tag):
        with pytest.raises(ValidationError):
            normalize_tags([tag])


class TestUpload:

    def test_upload_stores_bytes_and_record(self, service, store, owner):
        stored = service.upload(owner.id, "report.pdf", b"%PDF-1.4", "application/pdf")
        assert stored.size == 8
        assert stored.folder_id is None
        assert store.get(stored.object_ref) == b"%PDF-1.4"
        assert store.content_type(stored.object_ref) == "application/pdf"

    def test_empty_upload_rejected(self, service, owner):
        with pytest.raises(ValidationError):
            service.upload(owner.id, "empty.txt", b"", "text/plain")

    def test_oversize_upload_rejected(self, service, owner, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 4)
        with pytest.raises(ValidationError):
            service.upload(owner.id, "big.bin", b"12345", "application/octet-stream")

    def test_upload_into_foreign_folder_removes_object(self, db, service, store, owner, tmp_path):
        other = make_user(db, "eve@example.com", "Eve")
        theirs = FolderService(db).create_folder("Private", None, other.id)

        with pytest.raises(UnauthorizedError):
            service.upload(owner.id, "a.txt", b"a", "text/plain", folder_id=theirs.id)

        leftovers = [p for p in (tmp_path / "objects").rglob("*") if p.is_file()]
        assert leftovers == []

    def test_upload_into_missing_folder(self, service, owner):
        with pytest.raises(FolderNotFoundError):
            service.upload(owner.id, "a.txt", b"a", "text/plain", folder_id="nope")

    def test_record_upload_rejects_zero_size(self, service, owner):
        with pytest.raises(ValidationError):
            service.record_upload(owner.id, "a.txt", 0, "text/plain", "0" * 32)


class TestListing:

    def test_root_versus_all_folders(self, db, service, owner):
        folder = FolderService(db).create_folder("A", None, owner.id)
        service.upload(owner.id, "root.txt", b"r", "text/plain")
        service.upload(owner.id, "nested.txt", b"n", "text/plain", folder_id=folder.id)

        root_files, root_total = service.list_files(owner.id, None)
        all_files, all_total = service.list_files(owner.id, ALL_FOLDERS)
        in_folder, _ = service.list_files(owner.id, folder.id)

        assert [f.name for f in root_files] == ["root.txt"]
        assert root_total == 1
        assert all_total == 2
        assert [f.name for f in in_folder] == ["nested.txt"]

    def test_pages_do_not_overlap(self, service, owner):
        for i in range(5):
            service.upload(owner.id, f"f{i}.txt", b"x" * (i + 1), "text/plain")

        first, total = service.list_files(owner.id, offset=0, limit=2, order_by="name", descending=False)
        second, _ = service.list_files(owner.id, offset=2, limit=2, order_by="name", descending=False)

        assert total == 5
        assert [f.name for f in first] == ["f0.txt", "f1.txt"]
        assert [f.name for f in second] == ["f2.txt", "f3.txt"]

    def test_other_users_files_are_invisible(self, db, service, owner):
        other = make_user(db, "eve@example.com", "Eve")
        service.upload(other.id, "secret.txt", b"s", "text/plain")
        assert service.list_files(owner.id)[1] == 0

    def test_bad_order_column(self, service, owner):
        with pytest.raises(ValidationError):
            service.list_files(owner.id, order_by="owner_id")

    def test_foreign_folder_listing(self, db, service, owner):
        other = make_user(db, "eve@example.com", "Eve")
        theirs = FolderService(db).create_folder("Private", None, other.id)
        with pytest.raises(FolderNotFoundError):
            service.list_files(owner.id, theirs.id)


class TestMoveAndTags:

    def test_move_between_folder_and_root(self, db, service, owner):
        folder = FolderService(db).create_folder("A", None, owner.id)
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")

        assert service.move_file(stored.id, folder.id, owner.id).folder_id == folder.id
        assert service.move_file(stored.id, None, owner.id).folder_id is None

    def test_move_requires_ownership(self, db, service, owner):
        other = make_user(db, "eve@example.com", "Eve")
        folder = FolderService(db).create_folder("A", None, owner.id)
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain", folder_id=folder.id)
        with pytest.raises(UnauthorizedError):
            service.move_file(stored.id, None, other.id)
        with pytest.raises(UnauthorizedError):
            service.tag(stored.id, ["mine"], other.id)

        db.expire_all()
        unchanged = service.get_file(stored.id)
        assert unchanged.folder_id == folder.id
        assert unchanged.tags == []

    def test_tag_and_untag(self, service, owner):
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")
        service.tag(stored.id, ["Work", "urgent"], owner.id)
        tagged = service.tag(stored.id, ["work", "q3"], owner.id)
        assert tagged.tags == ["work", "urgent", "q3"]

        untagged = service.untag(stored.id, ["URGENT"], owner.id)
        assert untagged.tags == ["work", "q3"]

    def test_tagging_twice_with_case_variants_keeps_one_tag(self, service, owner):
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")
        service.tag(stored.id, ["Work", "work", "WORK"], owner.id)
        assert service.tag(stored.id, ["Work", "work", "WORK"], owner.id).tags == ["work"]

    def test_tag_counts_and_suggestions(self, service, owner):
        a = service.upload(owner.id, "a.txt", b"a", "text/plain")
        b = service.upload(owner.id, "b.txt", b"b", "text/plain")
        service.tag(a.id, ["work", "travel"], owner.id)
        service.tag(b.id, ["work", "tax"], owner.id)

        assert service.list_user_tags(owner.id) == [("work", 2), ("tax", 1), ("travel", 1)]
        assert service.suggest_tags(owner.id, "t") == ["tax", "travel"]


class TestSearch:

    def test_name_type_and_tag_filters(self, service, owner):
        photo = service.upload(owner.id, "Beach.jpg", b"j", "image/jpeg")
        service.upload(owner.id, "beach-notes.txt", b"t", "text/plain")
        song = service.upload(owner.id, "song.mp3", b"m", "audio/mpeg")
        service.tag(photo.id, ["summer"], owner.id)
        service.tag(song.id, ["summer"], owner.id)

        assert {f.name for f in service.search_files(owner.id, query="BEACH")} == {
            "Beach.jpg", "beach-notes.txt",
        }
        assert [f.name for f in service.search_files(owner.id, types=["image"])] == ["Beach.jpg"]
        assert [f.name for f in service.search_files(owner.id, types=["document"])] == ["beach-notes.txt"]
        assert {f.name for f in service.search_files(owner.id, tags=["summer"])} == {
            "Beach.jpg", "song.mp3",
        }
        assert [f.name for f in service.search_files(owner.id, query="beach", tags=["summer"])] == [
            "Beach.jpg",
        ]

    def test_date_range_with_non_utc_offset(self, service, owner):
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")
        plus_five = timezone(timedelta(hours=5))
        created = as_utc(stored.created_at)

        just_before = (created - timedelta(minutes=1)).astimezone(plus_five)
        just_after = (created + timedelta(minutes=1)).astimezone(plus_five)

        assert [f.name for f in service.search_files(owner.id, date_from=just_before)] == ["a.txt"]
        assert service.search_files(owner.id, date_from=just_after) == []
        assert [f.name for f in service.search_files(owner.id, date_to=just_after)] == ["a.txt"]

    def test_unknown_type_rejected(self, service, owner):
        with pytest.raises(ValidationError):
            service.search_files(owner.id, types=["spreadsheet"])


class TestDelete:

    def test_delete_removes_object_then_record(self, db, service, store, owner):
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")
        file_id, ref = stored.id, stored.object_ref

        service.delete_file(file_id, owner.id)

        assert not store.exists(ref)
        assert db.query(StoredFile).filter(StoredFile.id == file_id).first() is None

    def test_failed_object_delete_keeps_record(self, db, service, store, owner, monkeypatch):
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")

        def _broken(object_ref):
            raise ExternalStoreFailure("disk gone")

        monkeypatch.setattr(store, "delete", _broken)
        with pytest.raises(ExternalStoreFailure):
            service.delete_file(stored.id, owner.id)
        assert service.get_file(stored.id).name == "a.txt"

    def test_record_delete_failure_after_object_delete(
        self, db, service, store, owner, monkeypatch, caplog
    ):
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")
        file_id, ref = stored.id, stored.object_ref
        real_commit = db.commit

        def _commit_fails_once():
            monkeypatch.setattr(db, "commit", real_commit)
            raise sqlalchemy.exc.OperationalError("DELETE FROM files", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", _commit_fails_once)
        with caplog.at_level(logging.ERROR, logger="filevault.services.file_service"):
            with pytest.raises(ExternalStoreFailure):
                service.delete_file(file_id, owner.id)

        assert any(
            r.levelno == logging.ERROR and "Inconsistency" in r.getMessage() for r in caplog.records
        )
        assert not store.exists(ref)
        assert service.get_file(file_id).name == "a.txt"
        assert [f.id for f in service.find_orphaned_records(owner.id)] == [file_id]

        service.delete_file(file_id, owner.id)
        assert db.query(StoredFile).filter(StoredFile.id == file_id).first() is None

    def test_delete_requires_ownership(self, db, service, store, owner):
        other = make_user(db, "eve@example.com", "Eve")
        stored = service.upload(owner.id, "a.txt", b"a", "text/plain")
        with pytest.raises(UnauthorizedError):
            service.delete_file(stored.id, other.id)
        assert store.exists(stored.object_ref)
        assert service.get_file(stored.id).name == "a.txt"

    def test_delete_missing_file(self, service, owner):
        with pytest.raises(StoredFileNotFoundError):
            service.delete_file("missing", owner.id)


class TestBulk:

    def test_bulk_delete_reports_each_failure(self, db, service, owner):
        other = make_user(db, "eve@example.com", "Eve")
        mine = service.upload(owner.id, "mine.txt", b"m", "text/plain")
        theirs = service.upload(other.id, "theirs.txt", b"t", "text/plain")

        result = service.bulk_delete([mine.id, theirs.id, "missing", mine.id], owner.id)

        assert result.total == 3
        assert result.succeeded == 1
        assert result.failed == 2
        assert {e.code for e in result.errors} == {"UNAUTHORIZED", "FILE_NOT_FOUND"}
        assert service.get_file(theirs.id).name == "theirs.txt"

    def test_bulk_move(self, db, service, owner):
        folder = FolderService(db).create_folder("A", None, owner.id)
        a = service.upload(owner.id, "a.txt", b"a", "text/plain")
        b = service.upload(owner.id, "b.txt", b"b", "text/plain")

        result = service.bulk_move([a.id, b.id, "missing"], folder.id, owner.id)

        assert result.succeeded == 2
        assert result.failed == 1
        assert service.list_files(owner.id, folder.id)[1] == 2

    def test_bulk_move_to_foreign_folder_fails_whole_request(self, db, service, owner):
        other = make_user(db, "eve@example.com", "Eve")
        theirs = FolderService(db).create_folder("Private", None, other.id)
        a = service.upload(owner.id, "a.txt", b"a", "text/plain")
        with pytest.raises(FolderNotFoundError):
            service.bulk_move([a.id], theirs.id, owner.id)


class TestOrphans:

    def test_purge_removes_records_without_objects(self, service, store, owner):
        gone = service.upload(owner.id, "gone.txt", b"g", "text/plain")
        kept = service.upload(owner.id, "kept.txt", b"k", "text/plain")
        store.delete(gone.object_ref)
        gone_id = gone.id

        assert [f.id for f in service.find_orphaned_records(owner.id)] == [gone_id]
        assert service.purge_orphaned_records(owner.id) == [gone_id]
        assert service.list_files(owner.id)[1] == 1
        assert service.get_file(kept.id).name == "kept.txt"

    def test_purge_with_nothing_to_do(self, service, owner):
        service.upload(owner.id, "a.txt", b"a", "text/plain")
        assert service.purge_orphaned_records(owner.id) == []
