"""Unit tests for encoding and the pydantic schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from cl_scheduler import JobDescriptor, ScheduleDefinition, decode, encode, prepare_schedule, to_timestamp


class TestEncoding:
    """Test suite for the canonical codec."""

    def test_encode_job_uses_class_key(self):
        job = JobDescriptor(class_name="Send", queue="mail", args=["x"])

        assert encode(job) == '{"args":["x"],"class":"Send","queue":"mail"}'

    def test_key_order_does_not_matter(self):
        """Test that dicts differing only in key order encode identically."""
        assert encode({"b": 1, "a": {"y": 2, "x": 1}}) == encode({"a": {"x": 1, "y": 2}, "b": 1})

    def test_decode_none(self):
        assert decode(None) is None

    def test_decode_job(self):
        job = JobDescriptor(class_name="Send", queue="mail", args=[1, {"k": None}])

        assert JobDescriptor.model_validate(decode(encode(job))) == job

    def test_schedule_payload_drops_unset_fields(self):
        definition = ScheduleDefinition.model_validate({"class": "MakeTea", "every": "1m"})

        assert decode(encode(definition)) == {"class": "MakeTea", "every": "1m"}


class TestToTimestamp:
    """Test suite for timestamp truncation."""

    def test_int(self):
        assert to_timestamp(1000) == 1000

    def test_float_truncated(self):
        assert to_timestamp(1000.999) == 1000

    def test_datetime(self):
        assert to_timestamp(datetime(1970, 1, 1, 0, 16, 40, 250000, tzinfo=timezone.utc)) == 1000

    @pytest.mark.parametrize("value", ["1000", None, True])
    def test_rejects_other_types(self, value):
        with pytest.raises(TypeError):
            to_timestamp(value)


class TestJobDescriptor:
    """Test suite for JobDescriptor validation."""

    def test_requires_class_name(self):
        with pytest.raises(ValidationError):
            JobDescriptor(class_name="", queue="mail")

    def test_requires_queue(self):
        with pytest.raises(ValidationError):
            JobDescriptor.model_validate({"class": "Send"})

    def test_is_frozen(self):
        job = JobDescriptor(class_name="Send", queue="mail")

        with pytest.raises(ValidationError):
            job.queue = "other"


class TestScheduleDefinition:
    """Test suite for ScheduleDefinition validation."""

    def test_requires_trigger(self):
        with pytest.raises(ValidationError):
            ScheduleDefinition.model_validate({"class": "MakeTea"})

    def test_cron_takes_precedence(self):
        definition = ScheduleDefinition(cron="0 * * * *", every="1m")

        assert definition.trigger == "0 * * * *"

    def test_rails_envs_alias(self):
        definition = ScheduleDefinition.model_validate({"every": "1m", "rails_envs": "production,staging"})

        assert definition.enabled_envs == ["production", "staging"]
        assert definition.enabled_in("staging") is True
        assert definition.enabled_in("development") is False

    def test_no_envs_means_everywhere(self):
        assert ScheduleDefinition(every="1m").enabled_in("anything") is True


class TestPrepareSchedule:
    """Test suite for prepare_schedule."""

    def test_explicit_class_kept(self):
        prepared = prepare_schedule({"job": {"class": "Worker", "every": "1m"}})

        assert prepared["job"].class_name == "Worker"

    def test_class_name_key_kept(self):
        prepared = prepare_schedule({"job": {"class_name": "Worker", "every": "1m"}})

        assert prepared["job"].class_name == "Worker"

    def test_input_not_mutated(self):
        raw = {"MakeTea": {"every": "1m"}}

        prepare_schedule(raw)

        assert raw == {"MakeTea": {"every": "1m"}}
