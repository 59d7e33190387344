"""Tests for SentAlertTracker and StaticIdentityResolver."""

import pytest

from src.notifications.identity import StaticIdentityResolver
from src.notifications.tracker import SentAlertTracker


class TestSentAlertTracker:

    def test_claim_once(self):
        tracker = SentAlertTracker()
        assert tracker.claim("a1") is True
        assert tracker.claim("a1") is False
        assert tracker.contains("a1")
        assert "a1" in tracker
        assert len(tracker) == 1

    def test_release_allows_reclaim(self):
        tracker = SentAlertTracker()
        tracker.claim("a1")
        tracker.release("a1")
        tracker.release("never-claimed")
        assert "a1" not in tracker
        assert tracker.claim("a1") is True

    def test_instances_are_independent(self):
        first, second = SentAlertTracker(), SentAlertTracker()
        first.claim("a1")
        assert "a1" not in second


class TestStaticIdentityResolver:

    @pytest.mark.asyncio
    async def test_lookup(self):
        resolver = StaticIdentityResolver({"u1": "a@b.c", "u2": ""})
        assert await resolver.get_user_email("u1") == "a@b.c"
        assert await resolver.get_user_email("u2") is None
        assert await resolver.get_user_email("u3") is None

    @pytest.mark.asyncio
    async def test_set_email(self):
        resolver = StaticIdentityResolver()
        resolver.set_email("u1", "x@y.z")
        assert await resolver.get_user_email("u1") == "x@y.z"
