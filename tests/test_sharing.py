"""Tests for share links, user shares, and access resolution."""

from datetime import timedelta

import pytest

from filevault.core.clock import utcnow
from filevault.exceptions import (
    InvalidOperationError,
    InvalidPasswordError,
    InvalidShareLinkError,
    PasswordRequiredError,
    TokenGenerationExhaustedError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from filevault.models.share import ShareLink
from filevault.services import access_service, user_share_service
from filevault.services.file_service import FileService
from filevault.services.permission_service import normalize_permissions
from filevault.services.share_link_service import ShareLinkService, TOKEN_ALPHABET, generate_token
from tests.conftest import make_user


@pytest.fixture()
def owner(db):
    return make_user(db)


@pytest.fixture()
def other(db):
    return make_user(db, "bob@example.com", "Bob")


@pytest.fixture()
def stored(db, store, owner):
    return FileService(db, store).upload(owner.id, "photo.jpg", b"jpeg", "image/jpeg")


@pytest.fixture()
def links(db):
    return ShareLinkService(db)


class TestPermissions:

    def test_canonical_order(self):
        assert normalize_permissions(["download", "VIEW"]) == ["view", "download"]

    @pytest.mark.parametrize("perms", [[], [""], ["delete"], ["view", "share"]])
    def test_rejects_empty_or_owner_only(self, perms):
        with pytest.raises(InvalidOperationError):
            normalize_permissions(perms)


class TestTokens:

    def test_generated_tokens_use_the_alphabet(self):
        token = generate_token(32)
        assert len(token) == 32
        assert set(token) <= set(TOKEN_ALPHABET)

    def test_collisions_are_retried(self, db, stored, owner):
        tokens = iter(["A" * 32, "A" * 32, "B" * 32])
        service = ShareLinkService(db, token_generator=lambda n: next(tokens))
        first = service.create_link(stored.id, owner.id, ["view"])
        second = service.create_link(stored.id, owner.id, ["view"])
        assert first.token == "A" * 32
        assert second.token == "B" * 32

    def test_gives_up_after_max_attempts(self, db, stored, owner):
        service = ShareLinkService(db, token_generator=lambda n: "C" * n)
        service.create_link(stored.id, owner.id, ["view"])
        with pytest.raises(TokenGenerationExhaustedError):
            service.create_link(stored.id, owner.id, ["view"])


class TestShareLinks:

    def test_create_and_validate(self, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["download", "view"])
        assert link.permissions == ["view", "download"]
        assert links.validate_access(link.token).id == link.id

    def test_only_owner_can_create(self, links, stored, other):
        with pytest.raises(UnauthorizedError):
            links.create_link(stored.id, other.id, ["view"])

    def test_non_positive_expiry_rejected(self, links, stored, owner):
        with pytest.raises(ValidationError):
            links.create_link(stored.id, owner.id, ["view"], expires_in_days=0)

    def test_password_protected_link(self, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["view"], password="s3cret")
        assert link.has_password
        with pytest.raises(PasswordRequiredError):
            links.validate_access(link.token)
        with pytest.raises(InvalidPasswordError):
            links.validate_access(link.token, "wrong")
        assert links.validate_access(link.token, "s3cret").id == link.id

    def test_expired_unknown_and_revoked_look_the_same(self, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["view"], expires_in_days=1)
        later = utcnow() + timedelta(days=2)

        with pytest.raises(InvalidShareLinkError):
            links.validate_access(link.token, now=later)
        with pytest.raises(InvalidShareLinkError):
            links.validate_access("Z" * 32)

        token = link.token
        links.revoke(link.id, owner.id)
        with pytest.raises(InvalidShareLinkError):
            links.validate_access(token)

    def test_only_owner_can_revoke(self, links, stored, owner, other):
        link = links.create_link(stored.id, owner.id, ["view"])
        with pytest.raises(UnauthorizedError):
            links.revoke(link.id, other.id)

    def test_list_active_hides_expired(self, links, stored, owner):
        live = links.create_link(stored.id, owner.id, ["view"])
        links.create_link(stored.id, owner.id, ["view"], expires_in_days=1)
        later = utcnow() + timedelta(days=2)
        assert [l.id for l in links.list_active(owner.id, now=later)] == [live.id]

    def test_sweep_deletes_expired_rows(self, db, links, stored, owner):
        links.create_link(stored.id, owner.id, ["view"])
        links.create_link(stored.id, owner.id, ["view"], expires_in_days=1)
        assert links.sweep_expired(now=utcnow() + timedelta(days=2)) == 1
        assert db.query(ShareLink).count() == 1

    def test_record_use_counts(self, db, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["view", "download"])
        links.record_use(link, "view")
        links.record_use(link, "view")
        links.record_use(link, "download")
        links.record_use(link, "delete")

        db.expire_all()
        refreshed = db.query(ShareLink).filter(ShareLink.id == link.id).one()
        assert (refreshed.views, refreshed.downloads) == (2, 1)

    def test_deleting_file_removes_its_links(self, db, store, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["view"])
        token = link.token
        FileService(db, store).delete_file(stored.id, owner.id)
        with pytest.raises(InvalidShareLinkError):
            links.validate_access(token)


class TestUserShares:

    def test_share_by_email_then_update(self, db, stored, owner, other):
        first = user_share_service.share_with_user(
            db, stored.id, owner.id, ["view"], shared_with_email="BOB@example.com"
        )
        second = user_share_service.share_with_user(
            db, stored.id, owner.id, ["view", "download"], shared_with_user_id=other.id
        )
        assert first.id == second.id
        assert second.permissions == ["view", "download"]
        assert len(user_share_service.list_file_shares(db, stored.id, owner.id)) == 1

    def test_shared_with_me(self, db, stored, owner, other):
        user_share_service.share_with_user(db, stored.id, owner.id, ["view"], shared_with_user_id=other.id)
        [(share, shared_file)] = user_share_service.list_shared_with_me(db, other.id)
        assert shared_file.id == stored.id
        assert user_share_service.list_shared_with_me(db, owner.id) == []

    def test_cannot_share_with_self(self, db, stored, owner):
        with pytest.raises(InvalidOperationError):
            user_share_service.share_with_user(db, stored.id, owner.id, ["view"], shared_with_user_id=owner.id)

    def test_unknown_recipient(self, db, stored, owner):
        with pytest.raises(UserNotFoundError):
            user_share_service.share_with_user(
                db, stored.id, owner.id, ["view"], shared_with_email="nobody@example.com"
            )

    def test_only_owner_can_share_or_list(self, db, stored, other):
        with pytest.raises(UnauthorizedError):
            user_share_service.share_with_user(db, stored.id, other.id, ["view"], shared_with_user_id=other.id)
        with pytest.raises(UnauthorizedError):
            user_share_service.list_file_shares(db, stored.id, other.id)

    def test_remove_share(self, db, stored, owner, other):
        share = user_share_service.share_with_user(
            db, stored.id, owner.id, ["view"], shared_with_user_id=other.id
        )
        with pytest.raises(UnauthorizedError):
            user_share_service.remove_share(db, share.id, other.id)
        user_share_service.remove_share(db, share.id, owner.id)
        assert user_share_service.list_shared_with_me(db, other.id) == []


class TestResolveAccess:

    def test_owner_has_everything(self, db, stored, owner):
        decision = access_service.resolve_access(db, stored.id, requester_id=owner.id)
        assert decision.via == access_service.VIA_OWNER
        assert decision.permits("delete")

    def test_stranger_is_denied(self, db, stored, other):
        decision = access_service.resolve_access(db, stored.id, requester_id=other.id)
        assert decision is access_service.DENIED
        with pytest.raises(UnauthorizedError):
            access_service.require_permission(decision, "view")

    def test_user_share_grants_its_permissions(self, db, stored, owner, other):
        user_share_service.share_with_user(db, stored.id, owner.id, ["view"], shared_with_user_id=other.id)
        decision = access_service.resolve_access(db, stored.id, requester_id=other.id)
        assert decision.via == access_service.VIA_USER_SHARE
        assert decision.permits("view")
        assert not decision.permits("download")

    def test_user_share_is_not_widened_by_a_link(self, db, links, stored, owner, other):
        user_share_service.share_with_user(db, stored.id, owner.id, ["view"], shared_with_user_id=other.id)
        link = links.create_link(stored.id, owner.id, ["view", "download"])
        decision = access_service.resolve_access(
            db, stored.id, requester_id=other.id, link_token=link.token
        )
        assert decision.via == access_service.VIA_USER_SHARE
        assert not decision.permits("download")

    def test_anonymous_link_holder(self, db, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["view"])
        decision = access_service.resolve_access(db, stored.id, link_token=link.token)
        assert decision.via == access_service.VIA_LINK
        assert decision.link_id == link.id
        assert decision.permissions == frozenset({"view"})

    def test_signed_in_user_without_share_can_use_link(self, db, links, stored, owner, other):
        link = links.create_link(stored.id, owner.id, ["view"])
        decision = access_service.resolve_access(
            db, stored.id, requester_id=other.id, link_token=link.token
        )
        assert decision.via == access_service.VIA_LINK

    def test_link_for_another_file_is_invalid(self, db, store, links, stored, owner):
        second = FileService(db, store).upload(owner.id, "other.txt", b"o", "text/plain")
        link = links.create_link(second.id, owner.id, ["view"])
        with pytest.raises(InvalidShareLinkError):
            access_service.resolve_access(db, stored.id, link_token=link.token)

    def test_protected_link_needs_password(self, db, links, stored, owner):
        link = links.create_link(stored.id, owner.id, ["view"], password="pw")
        with pytest.raises(PasswordRequiredError):
            access_service.resolve_access(db, stored.id, link_token=link.token)
        decision = access_service.resolve_access(
            db, stored.id, link_token=link.token, link_password="pw"
        )
        assert decision.allowed
