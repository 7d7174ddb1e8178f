"""Tests for the normalization stage."""

import copy

import pytest

from airtable_source.core.host import empty_pipeline_data
from airtable_source.core.plugin_context import PluginContext
from airtable_source.services.airtable.normalization import (
    METADATA_KEY,
    build_models,
    collect_field_names,
    normalize,
)
from airtable_source.utils import positional_id

SOURCE = "sourcebit-airtable-plugin"
BASE_ID = "appTEST123"


@pytest.fixture
def context():
    return PluginContext(
        entries={
            "poems": [{"Start": "a", "Finish": "b"}],
            "words": [{"Word": "x"}],
        },
        record_ids={"poems": ["recP1"], "words": ["recW1"]},
    )


def run(data, context, **kwargs):
    return normalize(data, context, source=SOURCE, base_id=BASE_ID, **kwargs)


class TestNormalize:
    def test_poems_and_words(self, context):
        result = run(empty_pipeline_data(), context)

        poems_model = {
            "source": SOURCE,
            "modelName": "poems",
            "modelLabel": "poems",
            "projectId": BASE_ID,
            "fieldNames": ["Start", "Finish"],
        }
        words_model = {
            "source": SOURCE,
            "modelName": "words",
            "modelLabel": "words",
            "projectId": BASE_ID,
            "fieldNames": ["Word"],
        }
        assert result["models"] == [poems_model, words_model]
        assert result["objects"] == [
            {"Start": "a", "Finish": "b", "id": "recP1", METADATA_KEY: poems_model},
            {"Word": "x", "id": "recW1", METADATA_KEY: words_model},
        ]

    def test_counts_per_cycle(self):
        ctx = PluginContext(entries={
            "a": [{"x": 1}, {"x": 2}],
            "b": [{"y": 1}],
            "c": [{"z": 1}, {"z": 2}, {"z": 3}],
        })
        prior = {"models": [{"modelName": "other"}], "objects": [{"id": "o1"}]}

        result = run(prior, ctx)

        assert len(result["models"]) == 1 + 3
        assert len(result["objects"]) == 1 + 6

    def test_metadata_points_at_own_table(self, context):
        result = run(empty_pipeline_data(), context)

        names = [obj[METADATA_KEY]["modelName"] for obj in result["objects"]]
        assert names == ["poems", "words"]
        # Entries reference the same descriptor that was appended to models
        assert result["objects"][0][METADATA_KEY] is result["models"][0]

    def test_zero_record_table(self):
        ctx = PluginContext(entries={"empty": [], "words": [{"Word": "x"}]})

        result = run(empty_pipeline_data(), ctx)

        assert result["models"][0]["modelName"] == "empty"
        assert result["models"][0]["fieldNames"] == []
        assert all(o[METADATA_KEY]["modelName"] != "empty" for o in result["objects"])
        assert len(result["objects"]) == 1

    def test_running_twice_doubles_objects(self, context):
        once = run(empty_pipeline_data(), context)
        twice = run(once, context)

        assert len(twice["objects"]) == 2 * len(once["objects"])
        assert len(twice["models"]) == 2 * len(once["models"])

    def test_inputs_not_mutated(self, context):
        data = {"models": [{"modelName": "prior"}], "objects": [{"id": "p"}], "extra": {"k": 1}}
        data_before = copy.deepcopy(data)
        entries_before = copy.deepcopy(context.entries)

        result = run(data, context)

        assert data == data_before
        assert context.entries == entries_before
        assert result is not data
        assert result["extra"] == {"k": 1}
        assert result["models"][0] == {"modelName": "prior"}

    def test_missing_collections_treated_as_empty(self, context):
        result = run({"pages": []}, context)

        assert result["pages"] == []
        assert len(result["models"]) == 2
        assert len(result["objects"]) == 2

    def test_synthetic_id_overrides_record_field(self):
        ctx = PluginContext(entries={"t": [{"id": "mine", "v": 1}]}, record_ids={"t": ["rec1"]})

        result = run(empty_pipeline_data(), ctx)

        assert result["objects"][0]["id"] == "rec1"
        assert ctx.entries["t"][0]["id"] == "mine"


class TestIdPolicies:
    def test_record_policy_falls_back_to_positional(self):
        ctx = PluginContext(entries={"poems": [{"a": 1}, {"a": 2}]})

        result = run(empty_pipeline_data(), ctx, id_policy="record")

        assert [o["id"] for o in result["objects"]] == [
            positional_id(BASE_ID, "poems", 0),
            positional_id(BASE_ID, "poems", 1),
        ]

    def test_positional_ids_are_stable_and_unique(self, context):
        first = run(empty_pipeline_data(), context, id_policy="positional")
        second = run(empty_pipeline_data(), context, id_policy="positional")

        ids = [o["id"] for o in first["objects"]]
        assert ids == [o["id"] for o in second["objects"]]
        assert len(set(ids)) == len(ids)
        assert ids[0] == positional_id(BASE_ID, "poems", 0)

    def test_sequence_continues_after_prior_objects(self, context):
        prior = {"models": [], "objects": [{"id": 0}, {"id": 1}]}

        result = run(prior, context, id_policy="sequence")

        assert [o["id"] for o in result["objects"]] == [0, 1, 2, 3]

    def test_sequence_skips_existing_integer_ids(self):
        prior = {"models": [], "objects": [{"id": 1}]}
        ctx = PluginContext(entries={"poems": [{"a": 1}, {"a": 2}]})

        result = run(prior, ctx, id_policy="sequence")

        ids = [o["id"] for o in result["objects"]]
        assert ids == [1, 2, 3]
        assert len(set(ids)) == len(ids)

    def test_sequence_ignores_non_integer_ids(self):
        prior = {"models": [], "objects": [{"id": "rec1"}, {"id": True}, {}]}
        ctx = PluginContext(entries={"poems": [{"a": 1}]})

        result = run(prior, ctx, id_policy="sequence")

        assert result["objects"][-1]["id"] == 3

    def test_unknown_policy(self, context):
        with pytest.raises(ValueError, match="Unknown id policy"):
            run(empty_pipeline_data(), context, id_policy="random")


class TestFieldNames:
    RECORDS = [{"a": 1, "b": 2}, {"b": 3, "c": 4}, {"d": 5, "a": 6}]

    def test_first_record_only(self):
        # Fields that appear only in later records are not listed
        assert collect_field_names(self.RECORDS, "first_record") == ["a", "b"]

    def test_union_in_first_seen_order(self):
        assert collect_field_names(self.RECORDS, "union") == ["a", "b", "c", "d"]

    def test_empty_table(self):
        assert collect_field_names([], "union") == []

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown field names mode"):
            collect_field_names(self.RECORDS, "all")

    def test_build_models_union(self):
        ctx = PluginContext(entries={"t": self.RECORDS})

        models = build_models(ctx, source=SOURCE, project_id=BASE_ID, field_names_mode="union")

        assert models["t"]["fieldNames"] == ["a", "b", "c", "d"]
