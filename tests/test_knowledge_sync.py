"""
Unit tests for SessionMemory and KnowledgeSynchronizer.

Run with: pytest tests/test_knowledge_sync.py -v
"""

import pytest

from ticket_ai.errors import AuthorizationError
from ticket_ai.interfaces.session_memory import RECENT_SEARCH_LIMIT
from ticket_ai.schemas.ai_schemas import Resource


class TestSessionMemory:
    """Test per-session knowledge bookkeeping."""

    def test_update_resource_recomputes_stats(self, memory, clock):
        memory.update_resource(Resource.EVENTS, [{"id": "e1", "category": "ดนตรี"}], clock.now())

        assert memory.stats.totalEvents == 1
        assert memory.last_fetch_time[Resource.EVENTS] == clock.now()

    def test_age_none_until_fetched(self, memory, clock):
        assert memory.age(Resource.CATEGORIES, clock.now()) is None

        memory.update_resource(Resource.CATEGORIES, [], clock.now())
        clock.advance(42)

        assert memory.age(Resource.CATEGORIES, clock.now()) == 42

    def test_recent_searches_deduplicated_and_bounded(self, memory):
        for i in range(RECENT_SEARCH_LIMIT + 2):
            memory.record_search(f"q{i}")
        memory.record_search("q5")

        recent = memory.user_preferences["recentSearches"]
        assert recent[0] == "q5"
        assert recent.count("q5") == 1
        assert len(recent) == RECENT_SEARCH_LIMIT

    def test_snapshot_hides_admin_stats_from_users(self, memory, clock, user, admin):
        memory.update_resource(Resource.SYSTEM_STATS, {"totalUsers": 3}, clock.now())

        assert memory.snapshot(user).admin_stats is None
        assert memory.snapshot(None).admin_stats is None
        assert memory.snapshot(admin).admin_stats == {"totalUsers": 3}


class TestRefresh:
    """Test age-threshold refresh of a single resource."""

    @pytest.mark.asyncio
    async def test_first_refresh_fetches(self, synchronizer, memory, data_api):
        result = await synchronizer.refresh(memory, Resource.EVENTS)

        assert result.refreshed
        assert result.count == 4
        assert data_api.calls["events"] == 1

    @pytest.mark.asyncio
    async def test_fresh_resource_is_not_refetched(self, synchronizer, memory, data_api, clock):
        await synchronizer.refresh(memory, Resource.EVENTS)
        clock.advance(30)

        result = await synchronizer.refresh(memory, Resource.EVENTS)

        assert not result.refreshed
        assert result.count == 4
        assert data_api.calls["events"] == 1

    @pytest.mark.asyncio
    async def test_stale_resource_is_refetched(self, synchronizer, memory, data_api, clock):
        await synchronizer.refresh(memory, Resource.EVENTS)
        clock.advance(61)

        result = await synchronizer.refresh(memory, Resource.EVENTS)

        assert result.refreshed
        assert data_api.calls["events"] == 2

    @pytest.mark.asyncio
    async def test_force_refresh_ignores_threshold(self, synchronizer, memory, data_api, clock):
        await synchronizer.refresh(memory, Resource.EVENTS)
        clock.advance(1)

        result = await synchronizer.refresh(memory, Resource.EVENTS, force_refresh=True)

        assert result.refreshed
        assert data_api.calls["events"] == 2

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_data(self, synchronizer, memory, data_api, clock):
        await synchronizer.refresh(memory, Resource.EVENTS)
        fetched_at = memory.last_fetch_time[Resource.EVENTS]
        data_api.failing.add("events")
        clock.advance(120)

        result = await synchronizer.refresh(memory, Resource.EVENTS)

        assert not result.refreshed
        assert result.warning is not None
        assert "events" in result.warning
        assert len(memory.events) == 4
        assert memory.last_fetch_time[Resource.EVENTS] == fetched_at

    @pytest.mark.asyncio
    async def test_tickets_skipped_without_user(self, synchronizer, memory, data_api):
        result = await synchronizer.refresh(memory, Resource.TICKETS)

        assert not result.refreshed
        assert data_api.calls["tickets"] == 0

    @pytest.mark.asyncio
    async def test_system_stats_require_admin(self, synchronizer, memory, user):
        with pytest.raises(AuthorizationError):
            await synchronizer.refresh(memory, Resource.SYSTEM_STATS, user=user)
        with pytest.raises(AuthorizationError):
            await synchronizer.refresh(memory, Resource.SYSTEM_STATS)

    @pytest.mark.asyncio
    async def test_system_stats_for_admin(self, synchronizer, memory, admin):
        result = await synchronizer.refresh(memory, Resource.SYSTEM_STATS, user=admin)

        assert result.refreshed
        assert memory.admin_stats["totalEvents"] == 4
        assert "revenue" in memory.admin_stats


class TestRefreshAll:
    """Test the per-caller resource set."""

    @pytest.mark.asyncio
    async def test_anonymous(self, synchronizer, memory):
        results = await synchronizer.refresh_all(memory)
        assert [r.resource for r in results] == [Resource.EVENTS, Resource.CATEGORIES]

    @pytest.mark.asyncio
    async def test_user(self, synchronizer, memory, user):
        results = await synchronizer.refresh_all(memory, user=user)

        assert [r.resource for r in results] == [Resource.EVENTS, Resource.CATEGORIES, Resource.TICKETS]
        assert memory.stats.totalTickets == 2

    @pytest.mark.asyncio
    async def test_admin(self, synchronizer, memory, admin):
        results = await synchronizer.refresh_all(memory, user=admin)
        assert Resource.SYSTEM_STATS in [r.resource for r in results]


class TestFreshness:
    """Test prompt annotations."""

    def test_nothing_fetched(self, synchronizer, memory):
        assert synchronizer.freshness(memory) == "ยังไม่มีข้อมูลที่ดึงจากระบบ"

    @pytest.mark.asyncio
    async def test_reports_age_in_seconds(self, synchronizer, memory, clock):
        await synchronizer.refresh(memory, Resource.EVENTS)
        clock.advance(15)

        assert synchronizer.freshness(memory) == "events: อัปเดตเมื่อ 15 วินาทีที่แล้ว"

    @pytest.mark.asyncio
    async def test_summary_mentions_upcoming_event(self, synchronizer, memory):
        await synchronizer.refresh_all(memory)
        summary = synchronizer.summary(memory)

        assert "Jazz Night" in summary
        assert "Food Festival" not in summary
        assert "Riverside Hall" in summary


class TestRefreshErrors:
    """Test that any collaborator failure falls back to the previous data."""

    @pytest.mark.asyncio
    async def test_unexpected_exception_keeps_previous_data(self, synchronizer, memory, data_api, clock, monkeypatch):
        await synchronizer.refresh(memory, Resource.CATEGORIES)
        clock.advance(120)

        async def reset():
            raise ConnectionResetError("connection reset by peer")

        monkeypatch.setattr(data_api, "list_categories", reset)
        result = await synchronizer.refresh(memory, Resource.CATEGORIES)

        assert not result.refreshed
        assert "categories" in result.warning
        assert len(memory.categories) == 3

    @pytest.mark.asyncio
    async def test_refresh_all_does_not_raise(self, synchronizer, memory, data_api, user, monkeypatch):
        async def broken(user_id=None):
            raise AttributeError("'str' object has no attribute 'get'")

        monkeypatch.setattr(data_api, "list_user_tickets", broken)
        results = await synchronizer.refresh_all(memory, user=user)

        by_resource = {r.resource: r for r in results}
        assert by_resource[Resource.EVENTS].refreshed
        assert by_resource[Resource.TICKETS].warning is not None
        assert memory.tickets == []


class TestTicketOwnership:
    """Test that tickets follow the caller, not just their age."""

    @pytest.mark.asyncio
    async def test_user_switch_refetches(self, synchronizer, memory, data_api, user):
        await synchronizer.refresh(memory, Resource.TICKETS, user=user)
        data_api.tickets = []

        other = user.model_copy(update={"id": "user-2"})
        result = await synchronizer.refresh(memory, Resource.TICKETS, user=other)

        assert result.refreshed
        assert memory.tickets == []
        assert memory.tickets_owner == "user-2"
        assert data_api.calls["tickets"] == 2

    @pytest.mark.asyncio
    async def test_same_user_within_threshold_is_cached(self, synchronizer, memory, data_api, user):
        await synchronizer.refresh(memory, Resource.TICKETS, user=user)
        result = await synchronizer.refresh(memory, Resource.TICKETS, user=user)

        assert not result.refreshed
        assert data_api.calls["tickets"] == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_for_new_user_drops_old_tickets(self, synchronizer, memory, data_api, user):
        await synchronizer.refresh(memory, Resource.TICKETS, user=user)
        data_api.failing.add("tickets")

        other = user.model_copy(update={"id": "user-2"})
        result = await synchronizer.refresh(memory, Resource.TICKETS, user=other)

        assert result.warning is not None
        assert result.count == 0
        assert memory.tickets == []

    @pytest.mark.asyncio
    async def test_logout_clears_tickets_and_stats(self, synchronizer, memory, user):
        await synchronizer.refresh_all(memory, user=user)
        assert memory.stats.totalTickets == 2

        await synchronizer.refresh_all(memory)

        assert memory.tickets == []
        assert memory.tickets_owner is None
        assert memory.stats.totalTickets == 0
        assert Resource.TICKETS not in memory.last_fetch_time
