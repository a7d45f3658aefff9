"""Tests for index/templates.py and index/naming.py."""

from __future__ import annotations

import pytest

from contextdex.index.models import EntityKind
from contextdex.index.naming import camelize, container_from_path
from contextdex.index.templates import (
    build_template_entity,
    extract_assigns,
    extract_calls,
    extract_components,
)

TEMPLATE = """\
<.header>
  Listing Users
  <:actions><.link patch={~p"/users/new"}><.button>New</.button></.link></:actions>
</.header>
<.table id="users" rows={@streams.users}>
  <:col :let={user}><%= MyAppWeb.Format.name(user) %></:col>
  <%= if @show_email do %><%= format_email(user.email) %><% end %>
</.table>
"""


class TestCamelize:
    @pytest.mark.parametrize(
        ("segment", "expected"),
        [("company_live", "CompanyLive"), ("my_app", "MyApp"), ("user", "User"), ("", "")],
    )
    def test_segments(self, segment: str, expected: str) -> None:
        assert camelize(segment) == expected


class TestContainerFromPath:
    def test_nested_source_path(self) -> None:
        assert container_from_path("lib/my_app/accounts/user.ex") == "MyApp.Accounts.User"

    def test_secondary_suffix_dropped(self) -> None:
        path = "lib/my_app_web/live/user_live/index.html.heex"
        assert container_from_path(path, extensions=(".heex",)) == "MyAppWeb.Live.UserLive.Index"

    def test_file_directly_under_source_dir_gets_default(self) -> None:
        assert container_from_path("lib/my_app.ex") == "Unknown"

    def test_outside_source_dirs_gets_default(self) -> None:
        assert container_from_path("test/my_app/user_test.exs", extensions=(".exs",)) == "Unknown"

    def test_wrong_extension_gets_default(self) -> None:
        assert container_from_path("lib/my_app/readme.md", default="X") == "X"

    def test_windows_separators(self) -> None:
        assert container_from_path("lib\\my_app\\repo.ex") == "MyApp.Repo"


class TestExtractors:
    def test_components_in_first_seen_order(self) -> None:
        assert extract_components(TEMPLATE) == ["header", "link", "button", "table"]

    def test_assigns(self) -> None:
        assert extract_assigns(TEMPLATE) == ["streams", "show_email"]

    def test_calls_qualified_first_and_stoplist_removed(self) -> None:
        calls = extract_calls(TEMPLATE)
        assert calls[0] == "MyAppWeb.Format.name"
        assert "format_email" in calls
        assert "if" not in calls


class TestBuildTemplateEntity:
    def test_entity_shape(self) -> None:
        path = "lib/my_app_web/live/user_live/index.html.heex"
        entity = build_template_entity(path, TEMPLATE, extensions=(".heex",))

        assert entity.kind == EntityKind.TEMPLATE
        assert entity.container == "MyAppWeb.Live.UserLive.Index"
        assert entity.name == "template"
        assert entity.arity == 0
        assert entity.start_line == 1
        assert entity.end_line == len(TEMPLATE.splitlines())
        assert entity.doc == "Template with components: header, link, button, table"
        assert entity.references == extract_calls(TEMPLATE)

    def test_lexical_text_carries_searchable_tokens(self) -> None:
        entity = build_template_entity("lib/my_app_web/live/page.heex", TEMPLATE, extensions=(".heex",))
        for token in ("template", "heex", "header", "show_email", "format_email"):
            assert token in entity.lexical_text.split()

    def test_default_container_outside_layout(self) -> None:
        entity = build_template_entity("priv/static/email.heex", "<p>hi</p>", extensions=(".heex",))
        assert entity.container == "Template"

    def test_empty_template_spans_one_line(self) -> None:
        entity = build_template_entity("lib/a/b.heex", "", extensions=(".heex",))
        assert (entity.start_line, entity.end_line) == (1, 1)
        assert entity.doc == "Template with components: "

    def test_raw_text_truncated(self) -> None:
        entity = build_template_entity("lib/a/b.heex", "x" * 2000, extensions=(".heex",))
        assert entity.raw_text is not None
        assert len(entity.raw_text) == 500
