"""
Unit tests for CacheEntry.

Covers construction, resolution, stale serving with deferred
regeneration, invalidation filters and hook lifecycle, using the
in-memory collaborators and a fake clock.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from async_transients.domain.cache.entities import (
    ContentDeletedEvent,
    ContentItem,
    ContentSavedEvent,
    EntryConfig,
    MutationContext,
)
from async_transients.domain.cache.exceptions import ComputeError, StoreUnavailable
from async_transients.domain.cache.value_objects import EntryKind, NO_OVERRIDE
from async_transients.services.cache import CacheEntry, Collaborators
from async_transients.services.queues import RegenerationScheduler

from tests.fixtures.content_test_data import RecordingContentQuery


def saved(content_type="post", terms=None, **context):
    return ContentSavedEvent(
        content_id=11,
        content=ContentItem(id=11, content_type=content_type, terms=terms or {}),
        context=MutationContext(**context),
    )


class TestConstruction:
    """Test option normalisation and derived properties."""

    def test_requires_collaborators(self):
        with pytest.raises(ValueError, match="requires collaborators"):
            CacheEntry({"name": "feed"})

    def test_options_and_config(self, collaborators, home_feed_options):
        entry = CacheEntry(EntryConfig(**home_feed_options), collaborators, ttl=60)

        assert entry.name == "home-feed"
        assert entry.kind is EntryKind.COMPUTED_QUERY
        assert entry.ttl == 60
        assert entry.compute_spec == {"type": "post", "limit": 10}
        assert entry.job_name == "regenerate:home-feed"
        assert entry.is_persistent
        assert "home-feed" in repr(entry)

    def test_name_truncated(self, collaborators):
        entry = CacheEntry(collaborators=collaborators, name="n" * 55)
        assert entry.name == "n" * 40

    def test_legacy_option_names(self, collaborators):
        entry = CacheEntry(
            {"name": "x", "timeout": -10, "query_args": {"type": "page"}},
            collaborators,
        )

        assert entry.ttl == 0
        assert entry.content_type_filter == "page"

    def test_generic_ignores_query_args(self, collaborators):
        entry = CacheEntry(
            {"name": "x", "kind": "generic", "compute_spec": {"limit": 3}}, collaborators
        )

        assert entry.compute_spec == {}
        assert entry.content_type_filter is None

    def test_setters(self, collaborators):
        entry = CacheEntry({"name": "x", "compute_spec": {"limit": 5}}, collaborators)

        entry.set_query_params({"type": "post"})
        entry.set_ttl("90.7")

        assert entry.compute_spec == {"limit": 5, "type": "post"}
        assert entry.ttl == 90
        entry.set_ttl("never")
        assert entry.ttl == 0


class TestInitialize:
    """Test the store-touching construction steps."""

    @pytest.mark.asyncio
    async def test_true_miss_computes_once_and_stores(
        self, collaborators, content_query, clock, home_feed_options
    ):
        entry = await CacheEntry.create(home_feed_options, collaborators)

        assert content_query.call_count == 1
        assert content_query.calls[0] == {"type": "post", "limit": 10}
        assert len(entry.current_value) == 10

        record = await collaborators.store.get_raw("home-feed")
        assert record.value == entry.current_value
        assert record.expires_at - clock() == 3600

    @pytest.mark.asyncio
    async def test_fresh_record_not_recomputed(
        self, collaborators, content_query, home_feed_options
    ):
        await collaborators.store.set("home-feed", ["cached"], 3600)

        entry = await CacheEntry.create(home_feed_options, collaborators)

        assert entry.current_value == ["cached"]
        assert await entry.resolve() == ["cached"]
        assert content_query.call_count == 0

    @pytest.mark.asyncio
    async def test_explicit_value_written(self, collaborators, content_query):
        entry = await CacheEntry.create(
            {"name": "menu", "kind": "generic", "value": {"items": 3}, "ttl": 0},
            collaborators,
        )

        record = await collaborators.store.get_raw("menu")
        assert record.value == {"items": 3}
        assert record.expires_at is None
        assert entry.current_value == {"items": 3}
        assert content_query.call_count == 0

    @pytest.mark.asyncio
    async def test_initialize_idempotent(self, collaborators, content_query, home_feed_options):
        entry = await CacheEntry.create(home_feed_options, collaborators)
        await entry.initialize()

        assert content_query.call_count == 1
        assert len(entry.registered_hooks) == 4

    @pytest.mark.asyncio
    async def test_compute_failure_on_true_miss_propagates(self, clock, home_feed_options):
        collaborators = Collaborators.in_memory(RecordingContentQuery(fail=True), clock=clock)

        with pytest.raises(ComputeError):
            await CacheEntry.create(home_feed_options, collaborators)

        assert "home-feed" not in collaborators.store

    @pytest.mark.asyncio
    async def test_unnamed_entry_is_inert(self, collaborators, content_query):
        entry = await CacheEntry.create({"value": "v"}, collaborators)

        assert not entry.is_persistent
        assert entry.registered_hooks == []
        assert len(collaborators.store) == 0
        assert await entry.resolve() == "v"
        assert await entry.intercept_read() is NO_OVERRIDE
        assert await entry.schedule_regeneration() is False
        assert await entry.delete() is False
        assert content_query.call_count == 0


class TestStaleWhileRevalidate:
    """Test stale serving and single background regeneration."""

    @pytest.mark.asyncio
    async def test_stale_read_served_without_compute(
        self, collaborators, content_query, clock, home_feed_options
    ):
        await collaborators.store.set("home-feed", ["old"], 60)
        clock.advance(120)

        entry = await CacheEntry.create(home_feed_options, collaborators)

        assert await entry.resolve() == ["old"]
        assert "home-feed" in collaborators.store
        assert content_query.call_count == 0
        assert collaborators.jobs.is_pending(entry.job_name)

    @pytest.mark.asyncio
    async def test_repeated_stale_reads_schedule_one_job(
        self, collaborators, clock, home_feed_options
    ):
        await collaborators.store.set("home-feed", ["old"], 60)
        clock.advance(120)
        entry = CacheEntry(home_feed_options, collaborators)

        first = await entry.intercept_read()
        second = await entry.intercept_read()

        assert first.value == second.value == ["old"]
        assert entry.raw_stored_value == ["old"]
        stats = collaborators.jobs.get_stats()
        assert stats["jobs_scheduled"] == 1
        assert stats["jobs_deduplicated"] == 1

    @pytest.mark.asyncio
    async def test_fresh_reads_schedule_one_job(self, collaborators, home_feed_options):
        """Test a fresh record is served and refreshed by a single pending job."""
        await collaborators.store.set("home-feed", ["v"], 3600)
        entry = CacheEntry(home_feed_options, collaborators)

        first = await entry.intercept_read()
        second = await entry.intercept_read()

        assert first.value == second.value == ["v"]
        assert not first.is_stale
        stats = collaborators.jobs.get_stats()
        assert stats["jobs_scheduled"] == 1
        assert stats["jobs_deduplicated"] == 1
        assert collaborators.jobs.is_pending(entry.job_name)

    @pytest.mark.asyncio
    async def test_serve_stale_disabled_schedules_nothing(self, collaborators, home_feed_options):
        await collaborators.store.set("home-feed", ["v"], 3600)
        entry = CacheEntry(home_feed_options, collaborators, always_serve_stale=False)

        assert await entry.intercept_read() is NO_OVERRIDE
        assert entry.raw_stored_value == ["v"]
        assert collaborators.jobs.get_stats()["jobs_scheduled"] == 0

    @pytest.mark.asyncio
    async def test_background_job_renews_record(
        self, collaborators, content_query, clock, home_feed_options
    ):
        await collaborators.store.set("home-feed", ["old"], 60)
        clock.advance(120)
        entry = await CacheEntry.create(home_feed_options, collaborators)

        assert await collaborators.jobs.run_due() == 1

        assert content_query.call_count == 1
        record = await collaborators.store.get_raw("home-feed")
        assert not record.is_stale
        assert record.value == entry.current_value
        assert record.expires_at - clock() == 3600
        assert not collaborators.jobs.is_pending(entry.job_name)

    @pytest.mark.asyncio
    async def test_background_failure_keeps_stale_value(self, clock, home_feed_options):
        on_error = MagicMock()
        base = Collaborators.in_memory(
            RecordingContentQuery(fail=True), clock=clock
        )
        jobs = RegenerationScheduler(clock=clock, on_error=on_error)
        collaborators = Collaborators(
            store=base.store,
            jobs=jobs,
            notifier=base.notifier,
            query=base.query,
            clock=clock,
        )
        await collaborators.store.set("home-feed", ["old"], 60)
        clock.advance(120)
        entry = await CacheEntry.create(home_feed_options, collaborators)

        await jobs.run_due()

        on_error.assert_called_once()
        job_name, error = on_error.call_args.args
        assert job_name == entry.job_name
        assert isinstance(error, ComputeError)
        assert await entry.resolve() == ["old"]
        assert jobs.is_pending(entry.job_name)

    @pytest.mark.asyncio
    async def test_serve_stale_disabled(
        self, collaborators, content_query, clock, home_feed_options
    ):
        await collaborators.store.set("home-feed", ["old"], 60)
        clock.advance(120)

        entry = await CacheEntry.create(
            home_feed_options, collaborators, always_serve_stale=False
        )

        assert content_query.call_count == 1
        assert entry.current_value != ["old"]
        assert entry.raw_stored_value == ["old"]
        assert not collaborators.jobs.is_pending(entry.job_name)

    @pytest.mark.asyncio
    async def test_store_read_failure_treated_as_miss(self, content_query, home_feed_options):
        store = AsyncMock()
        store.get.side_effect = StoreUnavailable("get")
        store.get_raw.side_effect = StoreUnavailable("get")
        collaborators = Collaborators(
            store=store, jobs=RegenerationScheduler(), query=content_query
        )
        entry = CacheEntry(home_feed_options, collaborators)

        value = await entry.resolve()

        assert len(value) == 10
        assert content_query.call_count == 1
        store.set.assert_awaited_once_with("home-feed", value, 3600)
        assert await entry.intercept_read() is NO_OVERRIDE


class TestInvalidation:
    """Test content-driven invalidation."""

    @pytest.mark.asyncio
    async def test_matching_save_forces_recompute(
        self, collaborators, content_query, home_feed_options
    ):
        entry = await CacheEntry.create(home_feed_options, collaborators)

        assert await collaborators.notifier.emit_saved(saved()) == 1
        assert "home-feed" not in collaborators.store

        await entry.resolve()
        assert content_query.call_count == 2

    @pytest.mark.asyncio
    async def test_filtered_saves_leave_record(self, collaborators, home_feed_options):
        entry = await CacheEntry.create(home_feed_options, collaborators)

        for event in (
            saved(content_type="page"),
            saved(is_autosave=True),
            saved(is_cron=True),
            saved(user_id="5", can_edit=False),
        ):
            assert await entry.handle_content_saved(event) is False

        assert "home-feed" in collaborators.store

    @pytest.mark.asyncio
    async def test_delete_always_invalidates(self, collaborators, home_feed_options):
        await CacheEntry.create(home_feed_options, collaborators)

        await collaborators.notifier.emit_deleted(ContentDeletedEvent(content_id=11))

        assert "home-feed" not in collaborators.store

    @pytest.mark.asyncio
    async def test_post_type_list_filter(self, collaborators):
        """Test a query over several content types invalidates on any of them."""
        entry = await CacheEntry.create(
            {"name": "mixed-feed", "compute_spec": {"post_type": ["post", "page"]}},
            collaborators,
        )

        assert entry.content_type_filter == ["post", "page"]
        assert await entry.handle_content_saved(saved(content_type="product")) is False
        assert "mixed-feed" in collaborators.store

        assert await collaborators.notifier.emit_saved(saved(content_type="page")) == 1
        assert "mixed-feed" not in collaborators.store

    @pytest.mark.asyncio
    async def test_taxonomy_scope(self, collaborators):
        entry = await CacheEntry.create(
            {"name": "category-cloud", "kind": "taxonomy", "taxonomy": "category"},
            collaborators,
        )

        assert await entry.handle_content_saved(saved(terms={})) is False
        assert "category-cloud" in collaborators.store

        assert await entry.handle_content_saved(saved(terms={"category": ["news"]})) is True
        assert "category-cloud" not in collaborators.store

    @pytest.mark.asyncio
    async def test_generic_entry_ignores_content_events(self, collaborators):
        entry = await CacheEntry.create(
            {"name": "blob", "kind": "generic", "value": "v"}, collaborators
        )

        await collaborators.notifier.emit_saved(saved())

        assert "blob" in collaborators.store
        assert len(entry.registered_hooks) == 2

    @pytest.mark.asyncio
    async def test_manual_invalidate(self, collaborators, home_feed_options):
        entry = await CacheEntry.create(home_feed_options, collaborators)

        assert await entry.invalidate() is True
        assert await entry.invalidate() is False


class TestSetValueAndClose:
    """Test explicit writes and hook removal."""

    @pytest.mark.asyncio
    async def test_set_value(self, collaborators, clock):
        entry = CacheEntry({"name": "menu", "kind": "generic", "ttl": 30}, collaborators)

        await entry.set_value(["a"], reset_store=False)
        assert "menu" not in collaborators.store

        await entry.set_value(["b"])
        record = await collaborators.store.get_raw("menu")
        assert record.value == ["b"]
        assert record.expires_at - clock() == 30

    @pytest.mark.asyncio
    async def test_none_not_written(self, collaborators):
        entry = CacheEntry({"name": "menu", "kind": "generic"}, collaborators)

        await entry.set_value(None)
        assert "menu" not in collaborators.store

    @pytest.mark.asyncio
    async def test_close_deregisters_hooks(self, collaborators, clock, home_feed_options):
        entry = await CacheEntry.create(home_feed_options, collaborators)
        await entry.close()

        assert entry.registered_hooks == []
        assert not collaborators.interceptors.has_callbacks("home-feed")

        await collaborators.notifier.emit_saved(saved())
        assert "home-feed" in collaborators.store

        # Without the pre-read callback expiration applies again.
        clock.advance(3601)
        record = await collaborators.store.get("home-feed")
        assert not record.found
