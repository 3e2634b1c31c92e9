"""Tests for the dispute field schema and validation."""

from datetime import date

import pytest

from disputai.agent.schema import (
    DISPUTE_SCHEMA,
    describe_fields,
    flow_for,
    missing_fields,
    required_fields,
    skipped_fields,
    submit_args_model,
    validate_fields,
)

TODAY = date(2024, 6, 1)


class TestRequiredFields:
    def test_base_required_fields(self):
        assert required_fields({}) == [
            "platform_name",
            "purchase_date",
            "purchase_amount",
            "currency",
            "problem_type",
            "description",
            "user_contact_platform",
            "training_permission",
        ]

    def test_contact_description_required_after_contact(self):
        assert "user_contact_desc" in required_fields({"user_contact_platform": "yes"})
        assert "user_contact_desc" not in required_fields({"user_contact_platform": "no"})

    def test_missing_treats_blank_as_missing(self, complete_fields):
        complete_fields["platform_name"] = "   "
        assert missing_fields(complete_fields) == ["platform_name"]


class TestQuestionFlow:
    def test_subscription_skips_tracking(self):
        assert "tracking_info" not in flow_for("subscription_auto_renewal")
        assert skipped_fields("subscription_auto_renewal") == {"tracking_info"}

    def test_not_delivered_skips_service_usage(self):
        assert skipped_fields("item_not_delivered") == {"service_usage"}

    def test_unknown_type_uses_full_flow(self):
        assert flow_for("something_else") == flow_for("other")
        assert skipped_fields(None) == set()


class TestValidateFields:
    def test_complete_mapping(self, complete_fields):
        check = validate_fields(complete_fields, today=TODAY)

        assert check.complete
        assert check.missing == []
        assert check.invalid == {}
        assert check.fields.platform_name == "Amazon"
        assert check.fields.purchase_amount == 49.99
        assert check.fields.currency == "USD"

    def test_missing_required_field(self, complete_fields):
        del complete_fields["training_permission"]
        check = validate_fields(complete_fields, today=TODAY)

        assert not check.complete
        assert check.fields is None
        assert check.missing == ["training_permission"]

    def test_contact_yes_requires_description(self, complete_fields):
        complete_fields["user_contact_platform"] = "yes"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.missing == ["user_contact_desc"]

        complete_fields["user_contact_desc"] = "Support said to wait another week."
        assert validate_fields(complete_fields, today=TODAY).complete

    def test_contact_no_drops_description(self, complete_fields):
        complete_fields["user_contact_desc"] = "stale text"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.fields.user_contact_desc is None

    def test_skipped_field_is_dropped(self, complete_fields):
        complete_fields["service_usage"] = "yes"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.complete
        assert check.fields.service_usage is None

    def test_amount_coerced_from_string(self, complete_fields):
        complete_fields["purchase_amount"] = "12,50"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.fields.purchase_amount == 12.5

    def test_amount_with_decimal_point_and_comma(self, complete_fields):
        complete_fields["purchase_amount"] = "12,5"
        assert validate_fields(complete_fields, today=TODAY).fields.purchase_amount == 12.5
        complete_fields["purchase_amount"] = "1299.00"
        assert validate_fields(complete_fields, today=TODAY).fields.purchase_amount == 1299.0

    @pytest.mark.parametrize("amount", ["1,299", "1.299,50", "12,"])
    def test_thousands_separator_rejected(self, complete_fields, amount):
        complete_fields["purchase_amount"] = amount
        check = validate_fields(complete_fields, today=TODAY)
        assert check.invalid == {"purchase_amount": "must be a number"}
        assert check.fields is None

    @pytest.mark.parametrize("amount", ["nan", "inf", "-inf", float("nan"), float("inf"), True])
    def test_non_finite_amount_rejected(self, complete_fields, amount):
        complete_fields["purchase_amount"] = amount
        check = validate_fields(complete_fields, today=TODAY)
        assert not check.complete
        assert "purchase_amount" in check.invalid

    @pytest.mark.parametrize("amount", ["abc", 0, -5])
    def test_invalid_amount(self, complete_fields, amount):
        complete_fields["purchase_amount"] = amount
        check = validate_fields(complete_fields, today=TODAY)
        assert not check.complete
        assert "purchase_amount" in check.invalid
        assert "purchase_amount" not in check.missing

    def test_future_date_rejected(self, complete_fields):
        complete_fields["purchase_date"] = "2024-07-01"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.invalid == {"purchase_date": "cannot be in the future"}

    def test_malformed_date_rejected(self, complete_fields):
        complete_fields["purchase_date"] = "last Tuesday"
        check = validate_fields(complete_fields, today=TODAY)
        assert "purchase_date" in check.invalid

    def test_short_description_rejected(self, complete_fields):
        complete_fields["description"] = "Broken"
        check = validate_fields(complete_fields, today=TODAY)
        assert "description" in check.invalid

    def test_enum_values_normalized(self, complete_fields):
        complete_fields["training_permission"] = "YES"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.fields.training_permission == "yes"

    def test_enum_value_outside_options(self, complete_fields):
        complete_fields["training_permission"] = "maybe"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.invalid == {"training_permission": "must be one of yes, no"}

    def test_unknown_keys_ignored(self, complete_fields):
        complete_fields["user_id"] = "someone_else"
        check = validate_fields(complete_fields, today=TODAY)
        assert check.complete
        assert not hasattr(check.fields, "user_id")


class TestSubmitArgsModel:
    def test_json_schema_lists_every_field(self):
        schema = submit_args_model().model_json_schema()
        assert set(schema["properties"]) == {spec.name for spec in DISPUTE_SCHEMA}

    def test_required_fields_declared(self):
        schema = submit_args_model().model_json_schema()
        assert set(schema["required"]) == {s.name for s in DISPUTE_SCHEMA if s.required}

    def test_enum_declared(self):
        schema = submit_args_model().model_json_schema()
        assert schema["properties"]["training_permission"]["enum"] == ["yes", "no"]


def test_describe_fields_mentions_rules():
    text = describe_fields()
    assert "- platform_name [required]" in text
    assert "user_contact_desc [required when user_contact_platform is 'yes']" in text
    assert "tracking_info [optional]" in text
