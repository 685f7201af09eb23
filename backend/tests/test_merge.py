"""
Tests for Document Decoding and Decode-Merge.

Requires Python 3.11+.
"""

from dataclasses import dataclass, field
from pathlib import Path

import pytest
from pydantic import BaseModel, ConfigDict, Field

from loader.decoder import JSON, YAML, format_for, parse_document
from loader.merge import check_target, is_mergeable, merge_into
from utils.errors import ConfigDecodeError


@dataclass
class Limits:
    """Nested dataclass section."""

    max_connections: int = 10
    timeout: float = 1.5


@dataclass
class AppConfig:
    """Dataclass decode target."""

    string_key: str = ""
    port: int = 8080
    tags: list[str] = field(default_factory=list)
    limits: Limits = field(default_factory=Limits)


@dataclass(frozen=True)
class FrozenConfig:
    """Frozen dataclass; cannot be merged into."""

    string_key: str = ""


class Database(BaseModel):
    """Nested pydantic section."""

    host: str = "localhost"
    pool_size: int = Field(default=5, ge=1)


class ServiceConfig(BaseModel):
    """Pydantic decode target."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = "service"
    log_level: str = Field(default="INFO", alias="logLevel")
    workers: int = Field(default=2, ge=1)
    database: Database = Field(default_factory=Database)


class TestDecoder:
    """Test cases for parse_document and format_for."""

    def test_format_for(self):
        """Test format selection by suffix."""
        assert format_for(Path("app.json")) == JSON
        assert format_for(Path("app.yaml")) == YAML
        assert format_for(Path("app.YML")) == YAML
        assert format_for(Path("app.conf")) == JSON

    def test_parse_json(self):
        """Test parsing a JSON object."""
        assert parse_document(b'{"string_key": "I\'m Cool!"}') == {"string_key": "I'm Cool!"}

    def test_parse_yaml(self):
        """Test parsing a YAML mapping."""
        document = parse_document(b"port: 9000\ntags: [a, b]\n", YAML)
        assert document == {"port": 9000, "tags": ["a", "b"]}

    def test_empty_yaml_is_empty_mapping(self):
        """Test that an empty YAML file decodes to no changes."""
        assert parse_document(b"# nothing here\n", YAML) == {}

    @pytest.mark.parametrize(
        "data,fmt",
        [
            (b'{"string_key": ', JSON),
            (b"", JSON),
            (b"\xff\xfe\xfa", JSON),
            (b"key: [unterminated\n", YAML),
        ],
    )
    def test_malformed_document(self, data: bytes, fmt: str):
        """Test that syntax errors become ConfigDecodeError."""
        with pytest.raises(ConfigDecodeError):
            parse_document(data, fmt)

    @pytest.mark.parametrize("data", [b"[1, 2]", b'"text"', b"42", b"null"])
    def test_top_level_must_be_object(self, data: bytes):
        """Test that non-object documents are rejected."""
        with pytest.raises(ConfigDecodeError, match="must be an object"):
            parse_document(data)

    def test_deeply_nested_json(self):
        """Test that a document nested past the recursion limit is a decode error."""
        with pytest.raises(ConfigDecodeError, match="nested too deeply"):
            parse_document(b"[" * 100000)


class TestMergeInto:
    """Test cases for decode-merge semantics."""

    def test_dict_merge_keeps_absent_keys(self):
        """Test that keys missing from the document keep their values."""
        target = {"string_key": "I'm Cool!", "port": 80}
        changes = merge_into(target, {"string_key": "I'm Cooler!"})

        assert target == {"string_key": "I'm Cooler!", "port": 80}
        assert changes == ["string_key"]

    def test_dict_accepts_new_keys(self):
        """Test that mapping targets take every document key."""
        target: dict = {}
        merge_into(target, {"not_string_key": "x"})
        assert target == {"not_string_key": "x"}

    def test_dict_nested_merge_in_place(self):
        """Test that nested mappings merge and keep their identity."""
        inner = {"host": "db", "port": 5432}
        target = {"database": inner}

        changes = merge_into(target, {"database": {"port": 6432}})

        assert target["database"] is inner
        assert inner == {"host": "db", "port": 6432}
        assert changes == ["database.port"]

    def test_unchanged_values_not_reported(self):
        """Test that rewriting an identical value reports no change."""
        target = {"a": 1}
        assert merge_into(target, {"a": 1}) == []

    def test_dataclass_ignores_unknown_fields(self):
        """Test that unknown document keys are dropped for dataclasses."""
        target = AppConfig(string_key="I'm Cooler!")
        changes = merge_into(target, {"not_string_key": "I'm Coolest!"})

        assert target.string_key == "I'm Cooler!"
        assert not hasattr(target, "not_string_key")
        assert changes == []

    def test_dataclass_nested_merge(self):
        """Test merging into a nested dataclass in place."""
        target = AppConfig()
        limits = target.limits

        merge_into(target, {"port": "9000", "limits": {"timeout": 3}})

        assert target.port == 9000
        assert target.limits is limits
        assert limits.timeout == 3.0
        assert limits.max_connections == 10

    def test_dataclass_type_mismatch_is_atomic(self):
        """Test that a bad value leaves every field untouched."""
        target = AppConfig(string_key="keep", port=1)

        with pytest.raises(ConfigDecodeError, match="limits.max_connections"):
            merge_into(
                target,
                {"string_key": "changed", "port": 2, "limits": {"max_connections": "many"}},
            )

        assert target.string_key == "keep"
        assert target.port == 1
        assert target.limits.max_connections == 10

    def test_pydantic_alias_and_name(self):
        """Test that pydantic fields match by alias and by name."""
        target = ServiceConfig()

        merge_into(target, {"logLevel": "DEBUG"})
        assert target.log_level == "DEBUG"

        merge_into(target, {"log_level": "WARNING"})
        assert target.log_level == "WARNING"

    def test_pydantic_constraints_enforced(self):
        """Test that Field constraints reject values without partial writes."""
        target = ServiceConfig()

        with pytest.raises(ConfigDecodeError, match="workers"):
            merge_into(target, {"name": "renamed", "workers": 0})

        assert target.name == "service"
        assert target.workers == 2

    def test_pydantic_nested_merge(self):
        """Test merging into a nested pydantic model in place."""
        target = ServiceConfig()
        database = target.database

        changes = merge_into(target, {"database": {"pool_size": 20}, "extra": True})

        assert target.database is database
        assert database.pool_size == 20
        assert database.host == "localhost"
        assert changes == ["database.pool_size"]


class TestCheckTarget:
    """Test cases for decode target validation."""

    @pytest.mark.parametrize("target", [{}, AppConfig(), ServiceConfig()])
    def test_supported_targets(self, target):
        """Test that mappings, dataclasses and models are accepted."""
        check_target(target)
        assert is_mergeable(target)

    @pytest.mark.parametrize("target", [FrozenConfig(), AppConfig, "text", [1, 2], None])
    def test_unsupported_targets(self, target):
        """Test that other targets raise TypeError."""
        with pytest.raises(TypeError):
            check_target(target)


class Handle:
    """Plain class pydantic has no schema for."""


@dataclass
class WithHandle:
    """Dataclass target carrying a runtime-only field."""

    string_key: str = ""
    handle: Handle | None = None


@dataclass
class Quotas:
    """Dataclass target with a typed mapping field."""

    limits: dict[str, int] = field(default_factory=lambda: {"a": 1, "b": 2})
    labels: dict = field(default_factory=dict)


class TestMergeEdgeCases:
    """Test cases for unusual targets and documents."""

    def test_field_without_schema_does_not_block_merge(self):
        """Test that a plain-class field leaves the other fields mergeable."""
        target = WithHandle()

        changes = merge_into(target, {"string_key": "I'm Cool!"})

        assert target.string_key == "I'm Cool!"
        assert target.handle is None
        assert changes == ["string_key"]

    def test_field_without_schema_rejects_document_values(self):
        """Test that a plain-class field only takes instances of its class."""
        target = WithHandle()

        with pytest.raises(ConfigDecodeError, match="handle"):
            merge_into(target, {"string_key": "changed", "handle": "not a handle"})

        assert target.string_key == ""

    def test_typed_mapping_field_is_validated(self):
        """Test that values inside a typed mapping field are type-checked."""
        target = Quotas()
        limits = target.limits

        with pytest.raises(ConfigDecodeError, match="limits"):
            merge_into(target, {"limits": {"a": "not-an-int"}})

        assert target.limits is limits
        assert limits == {"a": 1, "b": 2}

    def test_typed_mapping_field_merges_in_place(self):
        """Test that a typed mapping field is coerced and keeps its identity."""
        target = Quotas()
        limits = target.limits

        changes = merge_into(target, {"limits": {"a": "5", "c": 3}})

        assert target.limits is limits
        assert limits == {"a": 5, "b": 2, "c": 3}
        assert sorted(changes) == ["limits.a", "limits.c"]

    def test_untyped_mapping_field_merges_deeply(self):
        """Test that a plain dict field keeps nested keys absent from the document."""
        target = Quotas(labels={"team": {"name": "core", "size": 4}})

        merge_into(target, {"labels": {"team": {"size": 5}}})

        assert target.labels == {"team": {"name": "core", "size": 5}}

    def test_deeply_nested_document(self):
        """Test that recursion limits surface as a decode failure."""

        def nest(leaf: dict) -> dict:
            root: dict = {}
            inner = root
            for _ in range(5000):
                inner["next"] = {}
                inner = inner["next"]
            inner.update(leaf)
            return root

        target = nest({"value": 1})

        with pytest.raises(ConfigDecodeError, match="nested too deeply"):
            merge_into(target, nest({"value": 2}))

        inner = target
        while "next" in inner:
            inner = inner["next"]
        assert inner == {"value": 1}
