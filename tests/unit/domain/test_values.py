"""Unit tests for engine value types: the absent sentinel and output tokens."""

from __future__ import annotations

import copy
import pickle

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from terraspec.domain.values import NOT_PROVIDED, OutputToken

_SEGMENTS = st.from_regex(r"[a-z_][a-z0-9_]{0,11}", fullmatch=True)


def test_not_provided_is_a_falsy_singleton() -> None:
    assert not NOT_PROVIDED
    assert repr(NOT_PROVIDED) == "NOT_PROVIDED"
    assert copy.copy(NOT_PROVIDED) is NOT_PROVIDED
    assert copy.deepcopy({"a": NOT_PROVIDED})["a"] is NOT_PROVIDED
    assert pickle.loads(pickle.dumps(NOT_PROVIDED)) is NOT_PROVIDED


def test_token_addresses_and_interpolation() -> None:
    token = OutputToken("aws_db_instance", "main", "endpoint")
    lookup = OutputToken("aws_ami", "web", "image_id", data_source=True)

    assert token.resource_address == "aws_db_instance.main"
    assert token.address == "aws_db_instance.main.endpoint"
    assert str(token) == "${aws_db_instance.main.endpoint}"
    assert lookup.address == "data.aws_ami.web.image_id"
    assert lookup.interpolation() == "${data.aws_ami.web.image_id}"


def test_token_parse_accepts_bare_and_interpolated_forms() -> None:
    assert OutputToken.parse("aws_vpc.main.id") == OutputToken("aws_vpc", "main", "id")
    assert OutputToken.parse("${data.aws_ami.web.image_id}") == OutputToken(
        "aws_ami", "web", "image_id", data_source=True
    )
    nested = OutputToken.parse("${aws_elasticache_cluster.cache.cache_nodes[0].address}")
    assert nested.field == "cache_nodes[0].address"


@pytest.mark.parametrize("text", ["", "aws_vpc", "aws_vpc.main", "${aws_vpc}", "1abc.main.id"])
def test_token_parse_rejects_malformed_text(text: str) -> None:
    with pytest.raises(ValueError, match="not an output token"):
        OutputToken.parse(text)


def test_looks_like_token_only_matches_interpolation_form() -> None:
    assert OutputToken.looks_like_token("${aws_vpc.main.id}")
    assert not OutputToken.looks_like_token("aws_vpc.main.id")
    assert not OutputToken.looks_like_token("price is ${5}")
    assert not OutputToken.looks_like_token("www.example.com")


@settings(derandomize=True, deadline=None, max_examples=60)
@given(
    resource_type=_SEGMENTS,
    name=_SEGMENTS,
    field_name=_SEGMENTS,
    data_source=st.booleans(),
)
def test_token_parse_inverts_interpolation(
    resource_type: str, name: str, field_name: str, data_source: bool
) -> None:
    token = OutputToken(resource_type, name, field_name, data_source=data_source)
    assert OutputToken.parse(token.interpolation()) == token
