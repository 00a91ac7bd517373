"""Tests for the authorization resolver.

Tests cover:
- Resolution precedence (explicit binding, tag default, untagged default)
- Deterministic choice between duplicate defaults
- set_default keeping one default per tag group
- Header merging
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from application.services import authorization_resolver
from domain.models import HttpHeader, ToolBinding
from tests.fixtures.factories import AuthorizationFactory, ToolFactory


@pytest.fixture
def tagged_tool():
    return ToolFactory.create_http_tool(tag="weather", headers={"Accept": "application/json", "Authorization": "Bearer tool"})


class TestResolve:
    """Test authorization resolution precedence."""

    def test_explicit_binding_wins(self, tagged_tool):
        """An explicit authorization beats any default."""
        explicit = AuthorizationFactory.create(name="explicit")
        default = AuthorizationFactory.create(name="default", tag="weather", is_default=True)

        result = authorization_resolver.resolve(tagged_tool, [default, explicit], ToolBinding(tagged_tool.id, explicit.id))

        assert result == explicit

    def test_missing_explicit_authorization_does_not_fall_back(self, tagged_tool):
        """A dangling explicit choice resolves to nothing rather than a default."""
        default = AuthorizationFactory.create(tag="weather", is_default=True)

        result = authorization_resolver.resolve(tagged_tool, [default], ToolBinding(tagged_tool.id, "deleted"))

        assert result is None

    def test_tag_default_beats_untagged_default(self, tagged_tool):
        untagged = AuthorizationFactory.create(name="global", is_default=True)
        tagged = AuthorizationFactory.create(name="weather", tag="weather", is_default=True)

        assert authorization_resolver.resolve(tagged_tool, [untagged, tagged]) == tagged

    def test_untagged_default_used_when_tag_has_none(self, tagged_tool):
        untagged = AuthorizationFactory.create(name="global", is_default=True)
        other_tag = AuthorizationFactory.create(name="maps", tag="maps", is_default=True)

        assert authorization_resolver.resolve(tagged_tool, [other_tag, untagged]) == untagged

    def test_binding_without_authorization_uses_defaults(self, tagged_tool):
        tagged = AuthorizationFactory.create(tag="weather", is_default=True)

        assert authorization_resolver.resolve(tagged_tool, [tagged], ToolBinding(tagged_tool.id)) == tagged

    def test_no_default_returns_none(self, tagged_tool):
        assert authorization_resolver.resolve(tagged_tool, [AuthorizationFactory.create(tag="weather")]) is None

    def test_duplicate_defaults_resolve_to_first_in_order(self, tagged_tool):
        """Two defaults in one tag: the first in iteration order wins, every time."""
        first = AuthorizationFactory.create(name="first", tag="weather", is_default=True)
        second = AuthorizationFactory.create(name="second", tag="weather", is_default=True)

        results = {authorization_resolver.resolve(tagged_tool, [first, second]).id for _ in range(10)}

        assert results == {first.id}


class TestSetDefault:
    """Test the one-default-per-tag invariant."""

    @pytest.mark.asyncio
    async def test_clears_other_defaults_in_group(self):
        """After set_default exactly one default remains in the target's group."""
        a = AuthorizationFactory.create(name="a", tag="weather", is_default=True)
        b = AuthorizationFactory.create(name="b", tag="weather", is_default=True)
        c = AuthorizationFactory.create(name="c", tag="weather")
        persist = AsyncMock()

        updated = await authorization_resolver.set_default(c.id, [a, b, c], persist)

        defaults = [auth.name for auth in updated if auth.is_default_in_tag and auth.tag == "weather"]
        assert defaults == ["c"]
        assert persist.await_count == 3

    @pytest.mark.asyncio
    async def test_target_persisted_last(self):
        a = AuthorizationFactory.create(name="a", is_default=True)
        b = AuthorizationFactory.create(name="b")
        persisted = []

        await authorization_resolver.set_default(b.id, [a, b], persisted.append)

        assert [auth.name for auth in persisted] == ["a", "b"]
        assert persisted[-1].is_default_in_tag

    @pytest.mark.asyncio
    async def test_other_groups_untouched(self):
        """Defaults in other tag groups, including untagged, are kept."""
        untagged = AuthorizationFactory.create(name="global", is_default=True)
        maps = AuthorizationFactory.create(name="maps", tag="maps", is_default=True)
        weather = AuthorizationFactory.create(name="weather", tag="weather")
        persist = MagicMock(return_value=None)

        updated = await authorization_resolver.set_default(weather.id, [untagged, maps, weather], persist)

        assert [auth.is_default_in_tag for auth in updated] == [True, True, True]
        persist.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_id_raises(self):
        with pytest.raises(KeyError):
            await authorization_resolver.set_default("missing", [], AsyncMock())


class TestMergeHeaders:
    """Test tool and authorization header merging."""

    def test_authorization_overrides_tool_header(self, tagged_tool):
        authorization = AuthorizationFactory.create(headers={"Authorization": "Bearer auth", "X-Extra": "1"})

        merged = authorization_resolver.merge_headers(tagged_tool, authorization)

        assert merged == [
            HttpHeader("Accept", "application/json"),
            HttpHeader("Authorization", "Bearer auth"),
            HttpHeader("X-Extra", "1"),
        ]

    def test_keys_are_case_sensitive(self, tagged_tool):
        authorization = AuthorizationFactory.create(headers={"authorization": "lower"})

        keys = [header.key for header in authorization_resolver.merge_headers(tagged_tool, authorization)]

        assert keys == ["Accept", "Authorization", "authorization"]

    def test_merge_is_idempotent(self, tagged_tool):
        """Merging the same authorization twice gives the same result as once."""
        authorization = AuthorizationFactory.create(headers={"Authorization": "Bearer auth"})
        once = authorization_resolver.merge_headers(tagged_tool, authorization)

        merged_tool = ToolFactory.create_http_tool(tag="weather", headers={header.key: header.value for header in once})
        twice = authorization_resolver.merge_headers(merged_tool, authorization)

        assert twice == once

    def test_without_authorization_returns_tool_headers(self, tagged_tool):
        assert authorization_resolver.merge_headers(tagged_tool, None) == list(tagged_tool.http_request.headers)


class TestHelpers:
    def test_available_authorizations(self, tagged_tool):
        untagged = AuthorizationFactory.create(name="global")
        weather = AuthorizationFactory.create(name="weather", tag="weather")
        maps = AuthorizationFactory.create(name="maps", tag="maps")

        available = authorization_resolver.available_authorizations(tagged_tool, [untagged, weather, maps])

        assert available == [untagged, weather]

    def test_tool_tags_sorted_unique(self):
        tools = [ToolFactory.create(tag="b"), ToolFactory.create(tag="a"), ToolFactory.create(tag="b"), ToolFactory.create()]

        assert authorization_resolver.tool_tags(tools) == ["a", "b"]
