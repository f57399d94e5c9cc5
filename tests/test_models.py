"""Tests for data models."""

import pytest

from sf_data_transfer.models import (
    ApiFailure,
    Connection,
    FieldDescriptor,
    IdentifierMap,
    SaveResult,
    TransferConfig,
    TransferMode,
    TransferResult,
    WriteOutcome,
)


@pytest.mark.unit
class TestTransferConfig:
    def test_defaults(self) -> None:
        config = TransferConfig(entity_types=["Account"])

        assert config.batch_size == 200
        assert config.mode == TransferMode.INSERT
        assert not config.include_relationships
        assert config.record_limits == {}
        assert config.external_id_mapping == {}

    def test_mode_accepts_string(self) -> None:
        assert TransferConfig(entity_types=["Account"], mode="upsert").mode == TransferMode.UPSERT  # type: ignore[arg-type]

    def test_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            TransferConfig(entity_types=["Account"], mode="merge")  # type: ignore[arg-type]

    def test_entity_types_and_query_are_exclusive(self) -> None:
        with pytest.raises(ValueError, match="Exactly one of entity_types or custom_query"):
            TransferConfig(entity_types=["Account"], custom_query="SELECT Id FROM Account")

    def test_one_of_entity_types_and_query_is_required(self) -> None:
        with pytest.raises(ValueError, match="Exactly one of entity_types or custom_query"):
            TransferConfig()

    def test_blank_query(self) -> None:
        with pytest.raises(ValueError, match="must not be blank"):
            TransferConfig(custom_query="   ")

    def test_empty_entity_types(self) -> None:
        with pytest.raises(ValueError, match="at least one entity type"):
            TransferConfig(entity_types=[])

    @pytest.mark.parametrize("batch_size", [0, -5])
    def test_invalid_batch_size(self, batch_size: int) -> None:
        with pytest.raises(ValueError, match="batch_size must be a positive integer"):
            TransferConfig(entity_types=["Account"], batch_size=batch_size)

    def test_invalid_record_limit(self) -> None:
        with pytest.raises(ValueError, match="Record limit for Account"):
            TransferConfig(entity_types=["Account"], record_limits={"Account": 0})


@pytest.mark.unit
class TestIdentifierMap:
    def test_maps_are_kept_per_entity_type(self) -> None:
        id_map = IdentifierMap()
        id_map.add("Account", "001S1", "001T1")
        id_map.add("Contact", "001S1", "003T9")

        assert id_map.get("Account", "001S1") == "001T1"
        assert id_map.get("Contact", "001S1") == "003T9"
        assert id_map.get("Lead", "001S1") is None
        assert len(id_map) == 2
        assert "Account" in id_map
        assert "Lead" not in id_map
        assert id_map.entity_types == ["Account", "Contact"]

    def test_for_entity_returns_a_copy(self) -> None:
        id_map = IdentifierMap()
        id_map.add("Account", "001S1", "001T1")

        mapping = id_map.for_entity("Account")
        mapping["001S2"] = "001T2"

        assert id_map.get("Account", "001S2") is None
        assert id_map.for_entity("Lead") == {}


@pytest.mark.unit
class TestTransferResult:
    def test_finish_without_errors(self) -> None:
        assert TransferResult(records_transferred=3).finish().success

    def test_finish_with_errors(self) -> None:
        result = TransferResult(records_transferred=3)
        result.add_error("Contact: Invalid email")

        assert not result.finish().success


@pytest.mark.unit
class TestWriteOutcome:
    def test_counts(self) -> None:
        outcome = WriteOutcome(
            results=[
                SaveResult(id="001T1", success=True),
                SaveResult(id=None, success=False, errors=[ApiFailure("bad")]),
                SaveResult(id="001T2", success=True),
            ]
        )

        assert outcome.succeeded == 2
        assert [f.errors[0].message for f in outcome.failures] == ["bad"]


@pytest.mark.unit
class TestConnection:
    def test_trailing_slash_is_stripped(self) -> None:
        assert Connection("https://acme.my.salesforce.com/", "token").instance_url == "https://acme.my.salesforce.com"


@pytest.mark.unit
class TestFieldDescriptor:
    def test_flags(self) -> None:
        descriptor = FieldDescriptor.from_describe(
            {"name": "Code__c", "type": "string", "createable": False, "updateable": True, "externalId": True}
        )

        assert descriptor.is_writable
        assert not descriptor.creatable
        assert descriptor.is_external_id
        assert not descriptor.is_reference
