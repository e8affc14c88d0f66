"""Tests for config.yaml + config.local.yaml deep-merge semantics."""

from __future__ import annotations

from blackbook.config_merge import deep_merge, find_merge_key


class TestScalarsAndMappings:
    def test_override_scalar_wins(self):
        assert deep_merge({"a": 1}, {"a": 2}) == {"a": 2}

    def test_nested_mappings_merge(self):
        base = {"settings": {"source_repo": "~/dot", "backup_retention": 3}}
        override = {"settings": {"backup_retention": 5}}
        assert deep_merge(base, override) == {
            "settings": {"source_repo": "~/dot", "backup_retention": 5}
        }

    def test_null_deletes_key(self):
        assert deep_merge({"a": 1, "b": 2}, {"a": None}) == {"b": 2}

    def test_null_for_missing_key_is_noop(self):
        assert deep_merge({"a": 1}, {"z": None}) == {"a": 1}

    def test_inputs_not_mutated(self):
        base = {"a": {"b": [1]}}
        override = {"a": {"b": [2]}}
        deep_merge(base, override)
        assert base == {"a": {"b": [1]}}
        assert override == {"a": {"b": [2]}}


class TestLists:
    def test_merge_by_name(self):
        base = {"files": [{"name": "A", "source": "a"}, {"name": "B", "source": "b"}]}
        override = {"files": [{"name": "B", "pullback": True}, {"name": "C", "source": "c"}]}
        merged = deep_merge(base, override)
        assert merged["files"] == [
            {"name": "A", "source": "a"},
            {"name": "B", "source": "b", "pullback": True},
            {"name": "C", "source": "c"},
        ]

    def test_merge_by_id(self):
        base = {"x": [{"id": "default", "name": "Claude", "enabled": True}]}
        override = {"x": [{"id": "default", "enabled": False}]}
        assert deep_merge(base, override)["x"] == [
            {"id": "default", "name": "Claude", "enabled": False}
        ]

    def test_id_preferred_over_name(self):
        base = [{"id": "a", "name": "n"}]
        override = [{"id": "a", "name": "m"}]
        assert find_merge_key(base, override) == "id"

    def test_scalar_lists_replaced(self):
        assert deep_merge({"tools": ["a", "b"]}, {"tools": ["c"]}) == {"tools": ["c"]}

    def test_null_inside_matched_entry_deletes(self):
        base = {"files": [{"name": "A", "tools": ["claude-code"]}]}
        override = {"files": [{"name": "A", "tools": None}]}
        assert deep_merge(base, override)["files"] == [{"name": "A"}]

    def test_appended_entry_nulls_stripped(self):
        merged = deep_merge({"files": [{"name": "A"}]}, {"files": [{"name": "B", "x": None}]})
        assert merged["files"][1] == {"name": "B"}
