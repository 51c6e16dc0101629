"""Unit tests for ObservationContext."""

from infrastructure.observability import ObservationContext


class TestObservationContext:
    """Tests for ObservationContext."""

    def test_as_dict_omits_unset_fields(self):
        assert ObservationContext(job_id="job-1").as_dict() == {"job_id": "job-1"}

    def test_with_partition_returns_new_context(self):
        context = ObservationContext(job_id="job-1", target="node")

        scoped = context.with_partition(3)

        assert scoped.as_dict() == {"job_id": "job-1", "partition_id": 3, "target": "node"}
        assert context.partition_id is None

    def test_with_extra_merges_metadata(self):
        context = ObservationContext(extra={"a": 1}).with_extra(b=2)

        assert context.as_dict() == {"a": 1, "b": 2}
