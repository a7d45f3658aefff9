"""Root conftest.py for test configuration and shared fixtures.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local contextdex package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from contextdex.index.models import Entity  # noqa: E402
from contextdex.index.store import IndexStore  # noqa: E402

EntityFactory = Callable[..., Entity]


@pytest.fixture
def make_entity() -> EntityFactory:
    """Build an Entity with sensible defaults; override any field by keyword."""

    def _make(**overrides: Any) -> Entity:
        data: dict[str, Any] = {
            "container": "MyApp.Accounts",
            "name": "create_user",
            "arity": 1,
            "kind": "definition",
            "path": "lib/my_app/accounts.ex",
            "start_line": 10,
            "end_line": 14,
            "signature": "def create_user(attrs)",
            "lexical_text": "MyApp.Accounts create_user attrs",
            "references": [],
        }
        data.update(overrides)
        return Entity.model_validate(data)

    return _make


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / ".contextdex" / "index.db"


@pytest.fixture
def store(db_path: Path) -> Generator[IndexStore, None, None]:
    """An IndexStore that has not been built yet."""
    s = IndexStore(db_path)
    yield s
    s.close()


@pytest.fixture
def built_store(store: IndexStore, make_entity: EntityFactory) -> IndexStore:
    """A store rebuilt with a small call graph.

    Accounts.create_user/1 calls Repo.insert/1 and Accounts.validate/1.
    Web.UserController.create/2 calls Accounts.create_user/1.
    """
    store.rebuild_full(
        [
            make_entity(
                references=["MyApp.Repo.insert/1", "MyApp.Accounts.validate/1"],
                doc="Creates a user.",
                spec="@spec create_user(map()) :: {:ok, User.t()}",
                raw_text="def create_user(attrs) do\n  attrs |> validate() |> Repo.insert()\nend",
            ),
            make_entity(
                name="validate",
                start_line=20,
                end_line=22,
                kind="private-definition",
                signature="defp validate(attrs)",
                lexical_text="MyApp.Accounts validate attrs changeset",
            ),
            make_entity(
                container="MyApp.Repo",
                name="insert",
                path="lib/my_app/repo.ex",
                start_line=3,
                end_line=5,
                signature="def insert(changeset)",
                lexical_text="MyApp.Repo insert changeset",
            ),
            make_entity(
                container="MyAppWeb.UserController",
                name="create",
                arity=2,
                path="lib/my_app_web/controllers/user_controller.ex",
                start_line=7,
                end_line=12,
                signature="def create(conn, params)",
                lexical_text="MyAppWeb.UserController create conn params",
                references=["MyApp.Accounts.create_user/1"],
            ),
        ]
    )
    return store


@pytest.fixture
def elixir_project(tmp_path: Path) -> Path:
    """A small project tree with sources, a template and excluded dirs."""
    root = tmp_path / "project"
    (root / "lib" / "my_app").mkdir(parents=True)
    (root / "lib" / "my_app_web" / "live").mkdir(parents=True)
    (root / "test").mkdir()
    (root / "deps" / "phoenix").mkdir(parents=True)
    (root / "_build").mkdir()

    (root / "mix.exs").write_text("defmodule MyApp.MixProject do\nend\n")
    (root / "lib" / "my_app" / "accounts.ex").write_text(
        "defmodule MyApp.Accounts do\n  def create_user(attrs) do\n    attrs\n  end\nend\n"
    )
    (root / "lib" / "my_app_web" / "live" / "user_live.html.heex").write_text(
        '<.header>Users</.header>\n<.table rows={@users}>\n  <%= format_name(user) %>\n</.table>\n'
    )
    (root / "test" / "accounts_test.exs").write_text("defmodule MyApp.AccountsTest do\nend\n")
    (root / "deps" / "phoenix" / "phoenix.ex").write_text("defmodule Phoenix do\nend\n")
    (root / "README.md").write_text("# MyApp\n")
    return root
