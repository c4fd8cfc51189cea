"""Unit tests for the FormStore.

Tests cover:
- Initialization from schema defaults and caller-supplied values
- Value, touched and error mutations
- Single-field and whole-form validation
- Reset operations and schema replacement
- Observer subscription, ordering, copies and error isolation
- Derived metadata (dirty, valid, touched, visible, enabled)
- Ownership of values and schema, the bounded event history and diagnostics
"""

import logging

import pytest

from formengine.config import EngineConfig
from formengine.errors import InvalidSchemaError
from formengine.store import FormMeta, FormState, FormStore, clone, create_form_store


def signup_schema():
    return {
        "id": "signup",
        "meta": {"title": "Sign up"},
        "fields": {
            "name": {"label": "Name", "renderer": "text", "rules": {"required": True}},
            "age": {
                "label": "Age",
                "renderer": "number",
                "rules": {
                    "required": "Age required",
                    "min": {"value": 18, "message": "Must be 18+"},
                },
            },
            "plan": {"label": "Plan", "renderer": "select", "defaultValue": "free"},
            "company": {
                "label": "Company",
                "renderer": "text",
                "rules": {"required": True},
                "visibleWhen": {"field": "plan", "op": "equals", "value": "business"},
            },
            "seats": {
                "label": "Seats",
                "renderer": "number",
                "enabledWhen": {"field": "plan", "op": "notEquals", "value": "free"},
            },
            "tags": {"label": "Tags", "renderer": "multiselect", "defaultValue": []},
        },
    }


@pytest.fixture
def store():
    return FormStore(signup_schema())


class TestInitialization:
    """Test building a store."""

    def test_defaults_become_values(self, store):
        assert store.get_values() == {"plan": "free", "tags": []}
        assert store.get_initial_values() == {"plan": "free", "tags": []}

    def test_initial_values_override_defaults(self):
        store = FormStore(signup_schema(), initial_values={"plan": "pro", "name": "Ada"})

        assert store.get_values() == {"plan": "pro", "tags": [], "name": "Ada"}
        assert store.get_meta().is_dirty is False

    def test_fresh_state(self, store):
        state = store.get_state()

        assert state.errors == {}
        assert state.touched == set()
        assert state.is_submitting is False
        assert state.is_validating is False
        assert state.submit_count == 0

    def test_create_form_store(self):
        store = create_form_store(signup_schema(), config=EngineConfig(record_events=False))

        assert isinstance(store, FormStore)
        assert store.config.record_events is False

    def test_invalid_document_raises(self):
        doc = signup_schema()
        del doc["fields"]["name"]["renderer"]

        with pytest.raises(InvalidSchemaError):
            FormStore(doc)

    def test_rejects_other_schema_types(self):
        with pytest.raises(TypeError, match="list"):
            FormStore([])

    def test_default_lists_are_not_shared(self, store):
        store.get_values()["tags"].append("x")

        assert store.get_value("tags") == []


class TestValues:
    """Test value mutations and reads."""

    def test_set_then_get(self, store):
        store.set_value("name", "Ada")

        assert store.get_value("name") == "Ada"
        assert store.get_values()["name"] == "Ada"

    def test_unknown_field_is_written_and_warned(self, store, caplog):
        with caplog.at_level(logging.WARNING, logger="formengine.store"):
            store.set_value("nickname", "ace")

        assert store.get_value("nickname") == "ace"
        assert "nickname" in caplog.text

    def test_set_value_clears_own_error(self, store):
        store.validate_single_field("name")
        assert store.get_error("name") == "Name is required"

        store.set_value("name", "")

        assert store.get_error("name") is None

    def test_set_values_clears_every_error(self, store):
        store.validate_all_fields()
        assert store.get_errors()

        store.set_values({"name": "Ada", "age": 30})

        assert store.get_errors() == {}
        assert store.get_value("age") == 30

    def test_get_value_returns_copy(self, store):
        store.set_value("tags", ["a"])

        store.get_value("tags").append("b")

        assert store.get_value("tags") == ["a"]

    def test_set_input_normalizes(self, store):
        assert store.set_input("age", "42") is True

        assert store.get_value("age") == 42

    def test_set_input_drops_oversized_files(self):
        doc = signup_schema()
        doc["fields"]["cv"] = {"label": "CV", "renderer": "file", "props": {"maxSize": 10}}
        store = FormStore(doc)

        assert store.set_input("cv", {"name": "cv.pdf", "size": 11}) is False
        assert "cv" not in store.get_values()


class TestTouchedAndErrors:
    """Test touched flags and direct error control."""

    def test_set_touched_and_untouch(self, store):
        store.set_touched("name")
        assert store.is_touched("name") is True

        store.set_touched("name", False)
        assert store.is_touched("name") is False

    def test_set_touched_does_not_validate(self, store):
        store.set_touched("name")

        assert store.get_errors() == {}

    def test_set_touched_multiple(self, store):
        store.set_touched_multiple(["age", "name"])

        assert store.get_meta().touched_fields == ("name", "age")

    def test_set_error_and_clear(self, store):
        store.set_error("name", "Taken")
        assert store.get_error("name") == "Taken"

        store.set_error("name", "")
        assert store.get_error("name") is None

        store.set_error("name", "Taken")
        store.set_error("name", None)
        assert store.get_errors() == {}

    def test_display_error_waits_for_touch(self, store):
        store.validate_single_field("name")

        assert store.get_display_error("name") is None

        store.set_touched("name")
        assert store.get_display_error("name") == "Name is required"


class TestFieldValidation:
    """Test single-field and whole-form validation."""

    def test_age_scenario(self, store):
        store.set_value("age", 10)
        assert store.validate_single_field("age") is False
        assert store.get_error("age") == "Must be 18+"

        store.set_value("age", 25)
        assert store.validate_single_field("age") is True
        assert store.get_error("age") is None

        store.set_value("age", "")
        assert store.validate_single_field("age") is False
        assert store.get_error("age") == "Age required"

    def test_unknown_field_is_valid_and_silent(self, store, caplog):
        notifications = []
        store.subscribe(lambda state, meta: notifications.append(meta))

        with caplog.at_level(logging.WARNING, logger="formengine.store"):
            assert store.validate_single_field("ghost") is True

        assert notifications == []
        assert store.get_errors() == {}
        assert "ghost" in caplog.text

    def test_validate_all_fields_checks_visible_fields_only(self, store):
        assert store.validate_all_fields() is False

        assert store.get_errors() == {"name": "Name is required", "age": "Age required"}

    def test_validate_all_fields_drops_hidden_errors(self, store):
        store.set_value("plan", "business")
        store.validate_all_fields()
        assert "company" in store.get_errors()

        store.set_value("plan", "free")
        store.validate_all_fields()

        assert "company" not in store.get_errors()

    def test_validate_all_fields_toggles_is_validating(self, store):
        flags = []
        store.subscribe(lambda state, meta: flags.append(state.is_validating))

        store.validate_all_fields()

        assert flags == [True, False]
        assert store.get_state().is_validating is False


class TestDependencies:
    """Test re-validation of dependent fields."""

    def test_touched_dependent_is_revalidated(self, store):
        store.set_value("plan", "business")
        store.set_touched("company")
        store.validate_single_field("company")
        assert store.get_error("company") == "Company is required"

        # hiding the field makes it valid
        store.set_value("plan", "free")

        assert store.get_error("company") is None

    def test_untouched_dependent_is_left_alone(self, store):
        store.set_value("plan", "business")
        store.validate_single_field("company")

        store.set_value("plan", "free")

        assert store.get_error("company") == "Company is required"

    def test_dependent_gains_error_when_shown(self, store):
        store.set_touched("company")

        store.set_value("plan", "business")

        assert store.get_error("company") == "Company is required"

    def test_revalidated_fields_reported_in_event(self, store):
        store.set_touched("company")

        store.set_value("plan", "business")

        event = store.get_events()[-1]
        assert event.payload["revalidated"] == ["company"]


class TestReset:
    """Test reset, reset_field and set_schema."""

    def test_reset_restores_everything(self, store):
        store.set_value("name", "Ada")
        store.set_touched("name")
        store.set_error("age", "bad")

        store.reset()

        state = store.get_state()
        assert state.values == {"plan": "free", "tags": []}
        assert state.errors == {}
        assert state.touched == set()
        assert state.submit_count == 0
        assert store.get_meta().is_dirty is False

    def test_reset_restores_untouched_initial_lists(self, store):
        store.set_value("tags", ["a"])

        store.reset()

        assert store.get_value("tags") == []

    def test_reset_field_with_initial_value(self, store):
        store.set_value("plan", "pro")
        store.set_touched("plan")
        store.set_error("plan", "nope")

        store.reset_field("plan")

        assert store.get_value("plan") == "free"
        assert store.is_touched("plan") is False
        assert store.get_error("plan") is None

    def test_reset_field_without_initial_value_removes_it(self, store):
        store.set_value("name", "Ada")

        store.reset_field("name")

        assert "name" not in store.get_values()

    def test_set_schema_discards_initial_values(self):
        store = FormStore(signup_schema(), initial_values={"name": "Ada"})
        store.set_touched("name")
        replacement = {
            "id": "feedback",
            "fields": {"rating": {"label": "Rating", "renderer": "number", "defaultValue": 5}},
        }

        store.set_schema(replacement)

        assert store.get_schema().id == "feedback"
        assert store.get_values() == {"rating": 5}
        assert store.get_initial_values() == {"rating": 5}
        assert store.get_state().touched == set()


class TestSubscriptions:
    """Test observer behavior."""

    def test_observers_called_in_registration_order(self, store):
        order = []
        store.subscribe(lambda state, meta: order.append("first"))
        store.subscribe(lambda state, meta: order.append("second"))

        store.set_value("name", "Ada")

        assert order == ["first", "second"]

    def test_observer_receives_state_and_meta(self, store):
        received = []
        store.subscribe(lambda state, meta: received.append((state, meta)))

        store.set_value("name", "Ada")

        state, meta = received[-1]
        assert isinstance(state, FormState)
        assert isinstance(meta, FormMeta)
        assert state.values["name"] == "Ada"
        assert meta.is_dirty is True

    def test_observers_get_independent_copies(self, store):
        def vandal(state, meta):
            state.values["name"] = "Mallory"
            state.touched.add("age")

        seen = []
        store.subscribe(vandal)
        store.subscribe(lambda state, meta: seen.append(state.values.get("name")))

        store.set_value("name", "Ada")

        assert seen == ["Ada"]
        assert store.get_value("name") == "Ada"
        assert store.is_touched("age") is False

    def test_unsubscribe_is_idempotent(self, store):
        calls = []
        subscription = store.subscribe(lambda state, meta: calls.append(1))

        subscription.unsubscribe()
        subscription.unsubscribe()
        subscription()
        store.set_value("name", "Ada")

        assert calls == []
        assert subscription.active is False

    def test_unsubscribe_removes_only_its_registration(self, store):
        calls = []

        def observer(state, meta):
            calls.append(1)

        first = store.subscribe(observer)
        store.subscribe(observer)

        first.unsubscribe()
        store.set_value("name", "Ada")

        assert calls == [1]

    def test_failing_observer_is_isolated(self, store, caplog):
        calls = []

        def broken(state, meta):
            raise RuntimeError("render failed")

        store.subscribe(broken)
        store.subscribe(lambda state, meta: calls.append(1))

        with caplog.at_level(logging.ERROR, logger="formengine.store"):
            store.set_value("name", "Ada")

        assert calls == [1]
        assert "render failed" in caplog.text


class TestMeta:
    """Test derived metadata."""

    def test_dirty_tracks_structural_difference(self, store):
        store.set_value("tags", ["a"])
        assert store.is_dirty() is True

        store.set_value("tags", [])
        assert store.is_dirty() is False

    def test_dirty_is_type_strict(self):
        store = FormStore(signup_schema(), initial_values={"age": 1})

        store.set_value("age", True)

        assert store.is_dirty() is True

    def test_is_valid_follows_error_map(self, store):
        assert store.get_meta().is_valid is True

        store.set_error("name", "bad")

        meta = store.get_meta()
        assert meta.is_valid is False
        assert meta.error_fields == ("name",)

    def test_visibility_and_enablement(self, store):
        meta = store.get_meta()
        assert "company" not in meta.visible_fields
        assert "seats" not in meta.enabled_fields
        assert store.is_field_visible("company") is False

        store.set_value("plan", "business")

        meta = store.get_meta()
        assert "company" in meta.visible_fields
        assert "seats" in meta.enabled_fields
        assert store.is_field_enabled("seats") is True

    def test_unknown_fields_are_neither_visible_nor_enabled(self, store):
        assert store.is_field_visible("ghost") is False
        assert store.is_field_enabled("ghost") is False

    def test_touched_fields_in_schema_order(self, store):
        store.set_touched("extra")
        store.set_touched("tags")
        store.set_touched("name")

        assert store.get_meta().touched_fields == ("name", "tags", "extra")

    def test_meta_to_dict(self, store):
        data = store.get_meta().to_dict()

        assert data["isDirty"] is False
        assert data["visibleFields"] == ["name", "age", "plan", "seats", "tags"]
        assert data["enabledFields"] == ["name", "age", "plan", "company", "tags"]


class TestClone:
    """Test the snapshot copy helper."""

    def test_nested_containers_are_copied(self):
        original = {"a": [1, {"b": [2]}], "c": (3, [4])}

        copy = clone(original)
        copy["a"][1]["b"].append(5)
        copy["c"][1].append(6)

        assert original == {"a": [1, {"b": [2]}], "c": (3, [4])}

    def test_opaque_objects_are_shared(self):
        upload = object()

        assert clone({"file": upload})["file"] is upload


class TestOwnership:
    """Test that the store's state and schema cannot be changed behind its back."""

    def tampering_schema(self):
        def tamper(value, all_values):
            all_values["secret"] = "injected"
            all_values.pop("other", None)
            return True

        return {
            "id": "owned",
            "fields": {
                "name": {"label": "Name", "renderer": "text", "rules": {"validate": tamper}},
                "other": {"label": "Other", "renderer": "text", "defaultValue": "keep"},
            },
        }

    def test_predicate_cannot_mutate_values_on_single_validation(self):
        store = FormStore(self.tampering_schema())
        store.set_value("name", "x")

        assert store.validate_single_field("name") is True

        assert store.get_values() == {"name": "x", "other": "keep"}

    def test_predicate_cannot_mutate_values_on_form_validation(self):
        store = FormStore(self.tampering_schema())
        store.set_value("name", "x")

        assert store.validate_all_fields() is True

        assert store.get_values() == {"name": "x", "other": "keep"}

    def test_predicate_cannot_mutate_values_on_dependent_revalidation(self):
        doc = self.tampering_schema()
        doc["fields"]["name"]["visibleWhen"] = {"field": "other", "op": "notEquals", "value": None}
        store = FormStore(doc)
        store.set_touched("name")

        store.set_value("other", "changed")

        assert store.get_values() == {"other": "changed"}

    def test_schema_edits_do_not_reach_the_store(self, store):
        schema = store.get_schema()
        schema.fields.pop("name")
        schema.fields["age"].props["injected"] = True
        schema.layout.append(None)

        fresh = store.get_schema()
        assert fresh.field_ids() == ["name", "age", "plan", "company", "seats", "tags"]
        assert fresh.fields["age"].props == {}
        assert fresh.layout == []
        assert store.get_field("name") is not None

    def test_schema_copy_keeps_default_markers(self, store):
        schema = store.get_schema()

        assert schema.fields["plan"].has_default is True
        assert schema.fields["name"].has_default is False


class TestEventHistory:
    """Test the bounded event history."""

    def test_default_bound(self, store):
        for i in range(600):
            store.set_value("name", str(i))
        store.reset()

        events = store.get_events()
        assert len(events) == 500
        assert events[-1].type.value == "form.reset"
        assert events[-2].payload["value"] == "599"

    def test_custom_bound_keeps_most_recent(self):
        store = FormStore(signup_schema(), config=EngineConfig(max_history=3))

        for i in range(10):
            store.set_value("age", i)

        assert [e.payload["value"] for e in store.get_events()] == [7, 8, 9]

    def test_unbounded_history(self):
        store = FormStore(signup_schema(), config=EngineConfig(max_history=None))

        for i in range(10):
            store.set_value("age", i)

        assert len(store.get_events()) == 11


class TestDiagnostics:
    """Test how often schema problems are logged."""

    def test_unknown_operator_warned_once_per_load(self, caplog):
        doc = {
            "id": "diag",
            "fields": {
                "a": {"label": "A", "renderer": "text"},
                "b": {
                    "label": "B",
                    "renderer": "text",
                    "visibleWhen": {"field": "a", "op": "matches", "value": "x"},
                },
            },
        }

        with caplog.at_level(logging.WARNING):
            store = FormStore(doc)
            store.subscribe(lambda state, meta: None)
            for text in ("x", "xy", "xyz"):
                store.set_value("a", text)
                store.is_field_visible("b")

        warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert len(warnings) == 1
        assert "matches" in warnings[0].getMessage()
