"""Tests for the activity log: what gets recorded and how it reads back."""

from datetime import timedelta

from filevault.core.clock import utcnow
from filevault.models.activity import Activity, ActivityAction, ResourceType
from filevault.services import activity_service
from filevault.services.file_service import FileService
from filevault.services.folder_service import FolderService
from filevault.services.share_link_service import ShareLinkService
from tests.conftest import make_user


def _actions(db, user_id):
    entries, _ = activity_service.list_for_user(db, user_id, limit=100)
    return [e.action for e in entries]


class TestRecording:

    def test_operations_are_logged_for_the_actor(self, db, store):
        owner = make_user(db)
        folder = FolderService(db).create_folder("A", None, owner.id)
        stored = FileService(db, store).upload(owner.id, "a.txt", b"a", "text/plain", folder_id=folder.id)
        FileService(db, store).move_file(stored.id, None, owner.id)
        FileService(db, store).delete_file(stored.id, owner.id)

        assert set(_actions(db, owner.id)) == {
            "folder_create", "file_upload", "file_move", "file_delete",
        }

    def test_link_access_is_logged_to_the_owner(self, db, store):
        owner = make_user(db)
        stored = FileService(db, store).upload(owner.id, "a.txt", b"a", "text/plain")
        service = ShareLinkService(db)
        link = service.create_link(stored.id, owner.id, ["view"])

        service.record_use(link, "view")

        [entry] = activity_service.list_for_resource(
            db, ResourceType.FILE, stored.id, user_id=owner.id
        )[:1]
        assert entry.action == "share_access"
        assert activity_service.parse_metadata(entry) == {"link_id": link.id, "action": "view"}

    def test_log_never_raises_on_bad_metadata(self, db):
        activity_service.log(
            db, "u1", ActivityAction.FILE_TAG, ResourceType.FILE, "f1", "a.txt", {"bad": {1, 2}}
        )
        assert db.query(Activity).count() == 0

    def test_users_only_see_their_own_entries(self, db, store):
        alice = make_user(db)
        bob = make_user(db, "bob@example.com", "Bob")
        FolderService(db).create_folder("A", None, alice.id)
        assert _actions(db, bob.id) == []


class TestReading:

    def test_pagination_reports_total(self, db):
        for i in range(3):
            activity_service.log(db, "u1", ActivityAction.FOLDER_CREATE, ResourceType.FOLDER, f"f{i}", f"F{i}")
        entries, total = activity_service.list_for_user(db, "u1", offset=0, limit=2)
        assert total == 3
        assert len(entries) == 2

    def test_recent_window(self, db):
        activity_service.log(db, "u1", ActivityAction.FOLDER_CREATE, ResourceType.FOLDER, "new", "New")
        old = Activity(
            user_id="u1", action="folder_create", resource_type="folder",
            resource_id="old", resource_name="Old", created_at=utcnow() - timedelta(days=3),
        )
        db.add(old)
        db.commit()

        assert [e.resource_id for e in activity_service.list_recent(db, "u1", hours=24)] == ["new"]

    def test_purge_old_entries(self, db):
        db.add(Activity(
            user_id="u1", action="file_upload", resource_type="file",
            resource_id="old", resource_name="old.txt", created_at=utcnow() - timedelta(days=400),
        ))
        db.commit()
        activity_service.log(db, "u1", ActivityAction.FILE_UPLOAD, ResourceType.FILE, "new", "new.txt")

        assert activity_service.purge_old_entries(db, days=365) == 1
        assert activity_service.purge_old_entries(db, days=0) == 0
        assert db.query(Activity).count() == 1


class TestFormatMessage:

    def _entry(self, action, name="a.txt", metadata=None):
        import json

        return Activity(
            user_id="u1", action=action, resource_type="file", resource_id="f1",
            resource_name=name, metadata_json=json.dumps(metadata) if metadata else None,
        )

    def test_plain_message_quotes_the_name(self):
        assert activity_service.format_message(self._entry("file_upload")) == 'uploaded file "a.txt"'

    def test_bulk_message_counts_items(self):
        entry = self._entry("bulk_delete", "3 files", {"count": 3})
        assert activity_service.format_message(entry) == "deleted multiple files (3 items)"

    def test_move_message_names_destination(self):
        entry = self._entry("file_move", metadata={"destination": "/Work/"})
        assert activity_service.format_message(entry) == "moved file to /Work/"

    def test_unknown_action_falls_back_to_its_name(self):
        assert activity_service.format_message(self._entry("mystery")) == 'mystery "a.txt"'

    def test_unreadable_metadata(self):
        entry = self._entry("file_upload")
        entry.metadata_json = "{not json"
        assert activity_service.parse_metadata(entry) == {}
