"""End-to-end tests for the plugin lifecycle: bootstrap, transform, watch mode."""

import asyncio

import respx

from airtable_source.core.host import empty_pipeline_data
from airtable_source.core.plugin_context import PluginContext, PluginContextStore
from airtable_source.core.task_registry import TaskRegistry
from airtable_source.plugin import (
    NAME,
    bootstrap,
    get_options_from_setup,
    transform,
    watch_task_name,
)
from conftest import BASE_URL, TEST_BASE_ID, records_page

POEMS_PATH = f"/v0/{TEST_BASE_ID}/poems"
WORDS_PATH = f"/v0/{TEST_BASE_ID}/words"


def mock_tables(respx_mock):
    respx_mock.get(POEMS_PATH).respond(200, json=records_page({"Start": "a", "Finish": "b"}))
    respx_mock.get(WORDS_PATH).respond(200, json=records_page({"Word": "x"}, start=1))


class TestLifecycle:
    @respx.mock(base_url=BASE_URL)
    async def test_bootstrap_then_transform(self, api_client, respx_mock, options, log, debug):
        mock_tables(respx_mock)
        store = PluginContextStore()
        get_context, set_context = store.accessors(NAME)

        await bootstrap(
            options=options,
            get_plugin_context=get_context,
            set_plugin_context=set_context,
            log=log,
            debug=debug,
            client=api_client,
        )
        data = transform(
            data=empty_pipeline_data(), get_plugin_context=get_context, options=options, debug=debug
        )

        assert [m["modelName"] for m in data["models"]] == ["poems", "words"]
        assert all(m["source"] == NAME for m in data["models"])
        assert data["objects"] == [
            {"Start": "a", "Finish": "b", "id": "rec000", "__metadata": data["models"][0]},
            {"Word": "x", "id": "rec001", "__metadata": data["models"][1]},
        ]
        assert "Generated 2 tables" in log.messages

    async def test_bootstrap_reuses_cached_context(self, options, log):
        cached = PluginContext(entries={"poems": [{"n": 1}], "words": []}, base_id=TEST_BASE_ID)
        writes = []

        await bootstrap(
            options=options.model_copy(update={"reuse_cache": True}),
            get_plugin_context=lambda: cached,
            set_plugin_context=writes.append,
            log=log,
        )

        assert writes == []
        assert log.messages == ["Loaded 1 entries from cache"]

    @respx.mock(base_url=BASE_URL)
    async def test_stale_cache_yields_configured_models(self, api_client, respx_mock, options):
        mock_tables(respx_mock)
        opts = options.model_copy(update={"reuse_cache": True})
        store = PluginContextStore()
        store.set(NAME, PluginContext(entries={"oldtable": [{"n": 1}]}, base_id=TEST_BASE_ID))
        get_context, set_context = store.accessors(NAME)

        await bootstrap(
            options=opts,
            get_plugin_context=get_context,
            set_plugin_context=set_context,
            client=api_client,
        )
        data = transform(data=empty_pipeline_data(), get_plugin_context=get_context, options=opts)

        assert [m["modelName"] for m in data["models"]] == opts.table_names

    async def test_transform_reads_context_each_call(self, options):
        contexts = iter([
            PluginContext(entries={"poems": [{"n": 1}]}),
            PluginContext(entries={"poems": [{"n": 1}, {"n": 2}]}),
        ])

        first = transform(data=empty_pipeline_data(), get_plugin_context=lambda: next(contexts), options=options)
        second = transform(data=empty_pipeline_data(), get_plugin_context=lambda: next(contexts), options=options)

        assert len(first["objects"]) == 1
        assert len(second["objects"]) == 2

    def test_get_options_from_setup_ignores_host_kwargs(self):
        result = get_options_from_setup(answers={"pointsForJohn": 20}, data={}, context={})
        assert result == {"pointsForJohn": 15}


class TestWatchMode:
    @respx.mock(base_url=BASE_URL)
    async def test_poller_refreshes_context(self, api_client, respx_mock, options):
        mock_tables(respx_mock)
        store = PluginContextStore()
        get_context, set_context = store.accessors(NAME)
        registry = TaskRegistry()
        refreshed = asyncio.Event()

        async def refresh():
            refreshed.set()

        poller = await bootstrap(
            options=options.model_copy(update={"watch": True, "poll_interval": 0.01}),
            get_plugin_context=get_context,
            set_plugin_context=set_context,
            refresh=refresh,
            client=api_client,
            registry=registry,
        )
        assert registry.active_tasks[watch_task_name()] is poller
        first_fetch = get_context().fetched_at

        await asyncio.wait_for(refreshed.wait(), timeout=2)
        await registry.cancel_all()

        assert get_context().fetched_at >= first_fetch
        assert respx_mock.calls.call_count >= 4
        assert registry.active_tasks == {}

    @respx.mock(base_url=BASE_URL)
    async def test_no_poller_without_refresh_trigger(self, api_client, respx_mock, options):
        mock_tables(respx_mock)
        registry = TaskRegistry()
        store = PluginContextStore()
        get_context, set_context = store.accessors(NAME)

        poller = await bootstrap(
            options=options.model_copy(update={"watch": True}),
            get_plugin_context=get_context,
            set_plugin_context=set_context,
            client=api_client,
            registry=registry,
        )

        assert poller is None
        assert registry.active_tasks == {}
