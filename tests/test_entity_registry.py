"""
Tests for sitebook/services/entity_registry.py

  - kind lookup by tag, alias and slug
  - field coercion and request parsing
  - overlay / canonical / apply helpers
"""

from datetime import date
from types import SimpleNamespace

import pytest

from sitebook.core.exceptions import NotFoundError, ValidationError
from sitebook.services.approval_policy import ENTITY_TYPES, UNSET
from sitebook.services.entity_registry import FieldSpec, all_kinds, get_kind, get_kind_by_slug
from sitebook.utils.helpers import parse_date, to_int


class TestLookup:
    def test_every_policy_type_has_a_kind(self):
        assert sorted(k.tag for k in all_kinds()) == sorted(ENTITY_TYPES)

    @pytest.mark.parametrize("name, tag", [
        ("Transaction", "transaction"),
        ("Recordable", "record"),
        ("materialLedgerEntry", "materialledger"),
        ("material_ledger", "materialledger"),
        ("JOURNAL", "journal"),
    ])
    def test_names_are_normalised(self, name, tag):
        assert get_kind(name).tag == tag

    def test_unknown_name(self):
        with pytest.raises(ValidationError):
            get_kind("invoice")

    def test_slug_lookup(self):
        assert get_kind_by_slug("material-ledger").tag == "materialledger"
        with pytest.raises(NotFoundError):
            get_kind_by_slug("invoices")

    def test_journal_scoped_by_debit_project(self):
        assert get_kind("journal").project_field == "debit_project_id"
        assert get_kind("ledger").is_project_scoped is False


class TestFieldSpec:
    def test_money_rounds_and_rejects_negative(self):
        spec = FieldSpec("amount", "money")
        assert spec.coerce("1200.4567") == 1200.46
        with pytest.raises(ValueError):
            spec.coerce(-1)
        with pytest.raises(ValueError):
            spec.coerce(True)

    @pytest.mark.parametrize("raw", [float("nan"), "NaN", float("inf"), "-Infinity", "1e400"])
    def test_money_rejects_non_finite(self, raw):
        with pytest.raises(ValueError, match="finite"):
            FieldSpec("amount", "money").coerce(raw)

    def test_int_refuses_bools_and_fractions(self):
        spec = FieldSpec("ledger_id", "ref")
        assert spec.coerce("12") == 12
        assert spec.coerce(4.0) == 4
        for raw in (True, False, 3.7, "3.7", [1]):
            with pytest.raises(ValueError, match="must be an integer"):
                spec.coerce(raw)

    def test_positive_flag(self):
        with pytest.raises(ValueError, match="greater than zero"):
            FieldSpec("quantity", "float", positive=True).coerce(0)

    def test_bool_strings(self):
        spec = FieldSpec("is_gst_registered", "bool")
        assert spec.coerce("yes") is True
        assert spec.coerce("0") is False
        with pytest.raises(ValueError):
            spec.coerce("perhaps")

    def test_choice(self):
        spec = FieldSpec("type", "choice", choices=frozenset({"in", "out"}))
        assert spec.coerce(" in ") == "in"
        with pytest.raises(ValueError):
            spec.coerce("sideways")

    def test_required_blank(self):
        with pytest.raises(ValueError, match="is required"):
            FieldSpec("title", required=True).coerce("   ")
        assert FieldSpec("note").coerce("") is None

    def test_max_length(self):
        with pytest.raises(ValueError):
            FieldSpec("gst_number", max_length=5).coerce("ABCDEFG")

    def test_dates(self):
        spec = FieldSpec("date", "date")
        assert spec.coerce("2024-02-29") == date(2024, 2, 29)
        assert spec.coerce("29/02/2024") == date(2024, 2, 29)
        with pytest.raises(ValueError):
            spec.coerce("yesterday")
        assert spec.to_json(date(2024, 2, 29)) == "2024-02-29"


class TestParse:
    def test_full_parse_ignores_unknown_keys(self):
        values = get_kind("task").parse({"project_id": "3", "title": "Roof", "colour": "red"})
        assert values == {"project_id": 3, "title": "Roof"}

    def test_collects_all_errors(self):
        with pytest.raises(ValidationError) as exc:
            get_kind("material").parse({"unit": ""})
        assert exc.value.details == {"name": "is required", "unit": "is required"}

    def test_partial_parse_only_present_keys(self):
        assert get_kind("task").parse({"status": "done"}, partial=True) == {"status": "done"}

    def test_partial_skips_unset(self):
        assert get_kind("task").parse({"status": UNSET, "title": "x"}, partial=True) == {"title": "x"}

    def test_blank_optional_not_null_column_falls_back_on_create(self):
        values = get_kind("transaction").parse({
            "project_id": 1, "type": "income", "amount": 10, "description": "d",
            "date": "2024-01-01", "payment_mode": "",
        })
        assert "payment_mode" not in values

    def test_nullable_column_can_be_cleared(self):
        assert get_kind("task").parse({"due_date": ""}, partial=True) == {"due_date": None}

    def test_body_must_be_object(self):
        with pytest.raises(ValidationError):
            get_kind("task").parse(["title"])


class TestCanonicalHelpers:
    def test_overlay_is_json(self):
        kind = get_kind("transaction")
        assert kind.to_overlay({"date": date(2024, 1, 5), "amount": 10.0}) == {
            "date": "2024-01-05", "amount": 10.0,
        }

    def test_apply_restores_python_dates(self):
        kind = get_kind("task")
        entity = SimpleNamespace(title="a", due_date=None)
        kind.apply(entity, {"due_date": "2024-06-01", "title": UNSET, "not_a_field": 1})
        assert entity.due_date == date(2024, 6, 1)
        assert entity.title == "a"
        assert not hasattr(entity, "not_a_field")

    def test_parse_date_helper(self):
        assert parse_date("2024-06-01T10:00:00Z") == date(2024, 6, 1)
        assert parse_date("not a date") is None
        assert parse_date(None) is None

    @pytest.mark.parametrize("raw, expected", [
        (7, 7),
        ("  7 ", 7),
        (7.0, 7),
        (True, None),
        (7.5, None),
        ("seven", None),
        (None, None),
    ])
    def test_to_int_helper(self, raw, expected):
        assert to_int(raw) == expected
