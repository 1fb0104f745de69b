"""Tests for applying theme updates to projects."""

from __future__ import annotations

import json

import pytest

from conftest import read_json, write_json
from themeforge.core.updater import UpdateApplier
from themeforge.errors import ErrorCode, ThemeForgeError

FIXED_NOW = "2024-01-02T03:04:05+00:00"

V1_SETTINGS = {"global": {"color": [{"id": "bg", "type": "color", "default": "#fff"}]}}
V2_SETTINGS = {
    "global": {
        "color": [{"id": "bg", "type": "color", "default": "#eee"}],
        "size": [{"id": "pad", "type": "number", "default": 8}],
    }
}


@pytest.fixture
def project(store, repo, make_theme, projects_root):
    """A project created from shop 1.0.0 with a customized background color."""
    make_theme("shop", "1.0.0", settings=V1_SETTINGS)
    record = repo.create_project("My Site", "my-site", "shop", "1.0.0", project_id="p1")
    project_dir = projects_root / "my-site"
    store.copy_to_project("shop", project_dir)

    doc = read_json(project_dir / "theme.json")
    doc["settings"]["global"]["color"][0]["value"] = "#111"
    write_json(project_dir / "theme.json", doc)
    write_json(project_dir / "pages" / "index.json", {"name": "My custom home"})
    write_json(project_dir / "menus" / "main.json", {"name": "My menu"})
    return record


@pytest.fixture
def applier(store, repo, projects_root):
    return UpdateApplier(store, repo, projects_root, clock=lambda: FIXED_NOW)


def _publish_v2(store, add_layer):
    add_layer(
        "shop",
        "1.1.0",
        {
            "layout.liquid": "layout v2",
            "assets/style.css": "v2",
            "snippets/card.liquid": "card",
            "menus/main.json": json.dumps({"name": "Theme main"}),
            "menus/footer.json": json.dumps({"name": "Footer", "uuid": "keep-me"}),
            "menus/social.json": json.dumps({"name": "Social"}),
            "templates/index.json": json.dumps({"name": "Theme home"}),
            "templates/about.json": json.dumps({"name": "About"}),
            "templates/blog/post.json": json.dumps({"name": "Post", "slug": "blog-post"}),
        },
        settings=V2_SETTINGS,
    )
    store.materialize("shop")


def test_check_for_updates(applier, project, store, add_layer):
    check = applier.check_for_updates("p1")
    assert check.has_update is False
    assert check.current_version == "1.0.0"
    assert check.latest_version == "1.0.0"

    _publish_v2(store, add_layer)
    check = applier.check_for_updates("p1")
    assert check.has_update is True
    assert check.latest_version == "1.1.0"
    assert check.to_dict() == {"hasUpdate": True, "currentVersion": "1.0.0", "latestVersion": "1.1.0"}


def test_check_unknown_project_raises(applier):
    with pytest.raises(ThemeForgeError) as excinfo:
        applier.check_for_updates("missing")
    assert excinfo.value.code is ErrorCode.PROJECT_NOT_FOUND


def test_check_with_unknown_versions(applier, repo, store, make_theme):
    make_theme("shop")
    repo.create_project("No version", "nv", "shop", None, project_id="nv")
    repo.create_project("Gone theme", "gt", "deleted-theme", "1.0.0", project_id="gt")

    check = applier.check_for_updates("nv")
    assert (check.has_update, check.current_version, check.latest_version) == (False, "unknown", "1.0.0")
    check = applier.check_for_updates("gt")
    assert (check.has_update, check.current_version, check.latest_version) == (False, "1.0.0", "unknown")


def test_apply_when_current_is_noop(applier, project, repo, projects_root):
    before = (projects_root / "my-site" / "theme.json").read_text(encoding="utf-8")

    result = applier.apply_theme_update("p1")

    assert result.success is False
    assert result.message == "No update available"
    assert result.steps == []
    assert (projects_root / "my-site" / "theme.json").read_text(encoding="utf-8") == before
    assert repo.get_project_by_id("p1").last_theme_update_at is None


def test_apply_update(applier, project, store, add_layer, repo, projects_root):
    _publish_v2(store, add_layer)
    project_dir = projects_root / "my-site"

    result = applier.apply_theme_update("p1")

    assert result.success is True
    assert result.partial is False
    assert (result.previous_version, result.new_version) == ("1.0.0", "1.1.0")

    # theme-owned paths replaced
    assert (project_dir / "layout.liquid").read_text(encoding="utf-8") == "layout v2"
    assert (project_dir / "assets" / "style.css").read_text(encoding="utf-8") == "v2"
    assert (project_dir / "snippets" / "card.liquid").exists()

    # user menus and pages untouched, new ones added
    assert read_json(project_dir / "menus" / "main.json") == {"name": "My menu"}
    footer = read_json(project_dir / "menus" / "footer.json")
    assert footer["id"] == "footer"
    assert footer["uuid"] == "keep-me"
    assert footer["created"] == footer["updated"] == FIXED_NOW
    social = read_json(project_dir / "menus" / "social.json")
    assert social["uuid"]
    assert read_json(project_dir / "pages" / "index.json") == {"name": "My custom home"}
    about = read_json(project_dir / "pages" / "about.json")
    assert about["id"] == about["slug"] == "about"
    post = read_json(project_dir / "pages" / "blog" / "blog-post.json")
    assert post["id"] == "blog-post"

    # settings merged
    merged = read_json(project_dir / "theme.json")
    assert merged["version"] == "1.1.0"
    assert merged["settings"]["global"]["color"][0]["value"] == "#111"
    assert merged["settings"]["global"]["color"][0]["default"] == "#eee"
    assert merged["settings"]["global"]["size"][0]["default"] == 8

    record = repo.get_project_by_id("p1")
    assert record.theme_version == "1.1.0"
    assert record.last_theme_update_version == "1.1.0"
    assert record.last_theme_update_at == FIXED_NOW
    assert record.updated == FIXED_NOW

    assert applier.apply_theme_update("p1").success is False


def test_missing_theme_paths_are_skipped(applier, project, store, add_layer):
    add_layer("shop", "1.1.0", {"layout.liquid": "layout v2"}, settings=V2_SETTINGS)
    store.materialize("shop")

    result = applier.apply_theme_update("p1")

    outcome = {step.step: step.status for step in result.steps}
    assert outcome["replace:layout.liquid"] == "ok"
    assert outcome["replace:snippets"] == "skipped"
    assert outcome["menus"] == "ok"
    assert outcome["pages"] == "ok"
    assert outcome["settings"] == "ok"
    assert result.partial is False


def test_failed_step_is_reported_and_others_continue(applier, project, store, add_layer, repo, projects_root):
    _publish_v2(store, add_layer)
    (projects_root / "my-site" / "theme.json").unlink()

    result = applier.apply_theme_update("p1")

    assert result.success is True
    assert result.partial is True
    assert [step.step for step in result.failed_steps] == ["settings"]
    assert "settings" in result.message
    assert (projects_root / "my-site" / "layout.liquid").read_text(encoding="utf-8") == "layout v2"
    assert repo.get_project_by_id("p1").theme_version == "1.1.0"
    assert result.to_dict()["partial"] is True


def test_broken_menu_does_not_stop_other_menus(applier, project, store, add_layer, themes_root, projects_root):
    _publish_v2(store, add_layer)
    (themes_root / "shop" / "latest" / "menus" / "footer.json").write_text("{broken", encoding="utf-8")

    result = applier.apply_theme_update("p1")

    menus = next(step for step in result.steps if step.step == "menus")
    assert menus.status == "failed"
    assert "footer.json" in menus.error
    assert (projects_root / "my-site" / "menus" / "social.json").exists()


def test_toggle_theme_updates(applier, project, repo):
    record = applier.toggle_theme_updates("p1", False)
    assert record.receive_theme_updates is False
    assert record.updated == FIXED_NOW
    assert repo.get_project_by_id("p1").receive_theme_updates is False

    with pytest.raises(ThemeForgeError):
        applier.toggle_theme_updates("missing", True)



def test_unorderable_theme_version_is_never_applied(applier, project, repo, themes_root, add_layer, store):
    doc = read_json(themes_root / "shop" / "theme.json")
    doc["version"] = "beta"
    write_json(themes_root / "shop" / "theme.json", doc)

    check = applier.check_for_updates("p1")
    assert (check.has_update, check.latest_version) == (False, "beta")
    assert applier.apply_theme_update("p1").success is False
    assert repo.get_project_by_id("p1").theme_version == "1.0.0"

    doc["version"] = "1.0.0"
    write_json(themes_root / "shop" / "theme.json", doc)
    _publish_v2(store, add_layer)
    assert applier.check_for_updates("p1").has_update is True
    assert applier.apply_theme_update("p1").new_version == "1.1.0"


def test_broken_template_does_not_stop_other_pages(applier, project, store, add_layer, projects_root):
    add_layer(
        "shop",
        "1.1.0",
        {"templates/about.json": "{broken", "templates/contact.json": json.dumps({"name": "Contact"})},
    )
    store.materialize("shop")

    result = applier.apply_theme_update("p1")

    pages = next(step for step in result.steps if step.step == "pages")
    assert pages.status == "failed"
    assert "about.json" in pages.error
    assert read_json(projects_root / "my-site" / "pages" / "contact.json")["id"] == "contact"


def test_template_slug_cannot_leave_the_project(applier, project, store, add_layer, projects_root, tmp_path):
    add_layer("shop", "1.1.0", {"templates/landing.json": json.dumps({"name": "X", "slug": "../../../escaped"})})
    store.materialize("shop")

    applier.apply_theme_update("p1")

    assert read_json(projects_root / "my-site" / "pages" / "landing.json")["slug"] == "landing"
    assert not list(tmp_path.rglob("escaped.json"))
