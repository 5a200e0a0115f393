"""Tests for the rate limiting pure function and middleware integration."""

from filevault.middleware.request_context import check_rate_limit, limit_for_path


class TestCheckRateLimit:
    """Unit tests for the pure function: no middleware, no HTTP."""

    def test_allows_within_limit(self):
        bucket: dict = {}
        allowed, retry = check_rate_limit(bucket, "client-a", max_per_minute=60, now=0.0)
        assert allowed is True
        assert retry == 0.0

    def test_denies_after_exhaustion(self):
        bucket: dict = {}
        now = 0.0
        # Exhaust all tokens
        for _ in range(60):
            check_rate_limit(bucket, "client-a", max_per_minute=60, now=now)

        allowed, retry = check_rate_limit(bucket, "client-a", max_per_minute=60, now=now)
        assert allowed is False
        assert retry > 0

    def test_refills_over_time(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "client-a", max_per_minute=60, now=0.0)

        # 2 seconds later: should have refilled ~2 tokens
        allowed, _ = check_rate_limit(bucket, "client-a", max_per_minute=60, now=2.0)
        assert allowed is True

    def test_separate_keys_independent(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "client-a", max_per_minute=60, now=0.0)

        allowed, _ = check_rate_limit(bucket, "client-b", max_per_minute=60, now=0.0)
        assert allowed is True

    def test_zero_limit_always_allows(self):
        bucket: dict = {}
        allowed, _ = check_rate_limit(bucket, "any", max_per_minute=0, now=0.0)
        assert allowed is True


class TestLimitForPath:

    def test_public_links_get_smaller_bucket(self):
        namespace, cap = limit_for_path("/api/public/links/abc", 120)
        assert namespace == "public"
        assert cap == 30

    def test_other_paths_use_normal_cap(self):
        assert limit_for_path("/api/files", 120) == ("api", 120)

    def test_public_cap_never_below_one(self):
        assert limit_for_path("/api/public/links/abc", 2) == ("public", 1)

    def test_disabled_limit_stays_disabled(self):
        assert limit_for_path("/api/public/links/abc", 0) == ("api", 0)


class TestMiddleware:

    def test_public_link_requests_are_throttled(self, client, monkeypatch):
        from filevault.core.config import settings

        monkeypatch.setattr(settings, "rate_limit_per_minute", 4)
        first = client.post("/api/public/links/" + "x" * 32)
        assert first.status_code == 404
        second = client.post("/api/public/links/" + "x" * 32)
        assert second.status_code == 429
        assert second.json()["error"] == "RATE_LIMITED"
        assert "retry-after" in second.headers

    def test_health_is_never_throttled(self, client, monkeypatch):
        from filevault.core.config import settings

        monkeypatch.setattr(settings, "rate_limit_per_minute", 1)
        for _ in range(5):
            assert client.get("/health").status_code == 200
