"""Tests for task form validation."""

import math

import pytest

from sales_tracker.utils.validation import TaskValidationError, is_duplicate_title, validate_task_payload


class TestDuplicateTitle:

    def test_case_and_space_insensitive(self):
        assert is_duplicate_title("  call acme ", ["Call Acme", "Demo"])

    def test_distinct_title(self):
        assert not is_duplicate_title("Call Globex", ["Call Acme"])

    def test_own_title_not_a_duplicate_when_editing(self):
        assert not is_duplicate_title("Call ACME", ["Call Acme", "Demo"], current_title="Call Acme")
        assert is_duplicate_title("Demo", ["Call Acme", "Demo"], current_title="Call Acme")


class TestValidateTaskPayload:

    def test_returns_trimmed_title(self):
        assert validate_task_payload("  Call Acme  ", 100, 2) == "Call Acme"

    def test_zero_revenue_allowed(self):
        assert validate_task_payload("Call Acme", 0, 0.5) == "Call Acme"

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_title_required(self, title):
        with pytest.raises(TaskValidationError, match="Title is required") as exc_info:
            validate_task_payload(title, 100, 2)
        assert exc_info.value.field_name == "title"

    def test_duplicate_title(self):
        with pytest.raises(TaskValidationError, match="Duplicate title not allowed"):
            validate_task_payload("call acme", 100, 2, existing_titles=["Call Acme"])

    @pytest.mark.parametrize("revenue", [-1, math.nan, math.inf])
    def test_bad_revenue(self, revenue):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_task_payload("Call Acme", revenue, 2)
        assert exc_info.value.field_name == "revenue"

    @pytest.mark.parametrize("time_taken", [0, -2, math.nan])
    def test_bad_time_taken(self, time_taken):
        with pytest.raises(TaskValidationError) as exc_info:
            validate_task_payload("Call Acme", 100, time_taken)
        assert exc_info.value.field_name == "time_taken"

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_task_payload("", 1, 1)
