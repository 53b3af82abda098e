from pydantic import ValidationError
import pytest

from sitegen.contracts.dto import AdminTier, JobStatus, ProjectSpec
from sitegen.contracts.queues.assembly import AssemblyMessage


class TestProjectSpec:
    def test_missing_name_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            ProjectSpec.model_validate({"industry": "cafe"})
        assert exc_info.value.errors()[0]["loc"] == ("name",)

    def test_name_needs_a_letter_or_digit(self):
        with pytest.raises(ValidationError):
            ProjectSpec(name="  &&  ", industry="cafe")

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ProjectSpec.model_validate({"name": "A", "industry": "cafe", "colour": "red"})

    def test_normalization(self):
        spec = ProjectSpec(
            name="  Coffee2U ",
            industry="Coffee Cafe",
            modules=["Menu", "booking", "menu"],
            admin_tier="pro",
        )
        assert spec.name == "Coffee2U"
        assert spec.industry == "coffee-cafe"
        assert spec.modules == ["menu", "booking"]
        assert spec.admin_tier == AdminTier.PRO

    def test_invalid_module_identifier(self):
        with pytest.raises(ValidationError):
            ProjectSpec(name="A", industry="cafe", modules=["menu; drop table"])

    def test_priority_bounds(self):
        with pytest.raises(ValidationError):
            ProjectSpec(name="A", industry="cafe", priority=11)

    def test_idempotency_key_ignores_key_order(self):
        first = ProjectSpec.model_validate({"name": "A", "industry": "cafe", "modules": ["menu"]})
        second = ProjectSpec.model_validate({"modules": ["menu"], "industry": "cafe", "name": "A"})
        assert first.idempotency_key() == second.idempotency_key()

    def test_idempotency_key_changes_with_content(self):
        first = ProjectSpec(name="A", industry="cafe")
        second = ProjectSpec(name="B", industry="cafe")
        assert first.idempotency_key() != second.idempotency_key()


def test_terminal_statuses():
    assert not JobStatus.QUEUED.is_terminal
    assert not JobStatus.RUNNING.is_terminal
    assert JobStatus.SUCCEEDED.is_terminal
    assert JobStatus.FAILED.is_terminal
    assert JobStatus.CANCELLED.is_terminal


def test_assembly_message_defaults():
    message = AssemblyMessage(job_id="job-1")
    data = message.model_dump(mode="json")
    assert data["attempt"] == 1
    assert data["version"] == "1"
    assert data["correlation_id"]
    assert AssemblyMessage.model_validate(data).job_id == "job-1"
