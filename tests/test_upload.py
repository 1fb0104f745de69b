"""Tests for theme package validation and installation."""

from __future__ import annotations

import json

import pytest

from conftest import build_zip, package_files, read_json, theme_document
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.upload import ThemeInstaller, ThemeUploadValidator


def _with_update(files: dict, version: str, extra: dict | None = None, *, declared: str | None = None) -> dict:
    files = dict(files)
    files[f"shop/updates/{version}/theme.json"] = json.dumps(theme_document(declared or version))
    for name, content in (extra or {}).items():
        files[f"shop/updates/{version}/{name}"] = content
    return files


def _invalid(store, files: dict) -> ThemeForgeError:
    with pytest.raises(ThemeForgeError) as excinfo:
        ThemeUploadValidator(store).validate(build_zip(files))
    return excinfo.value


def test_validate_new_theme(store):
    plan = ThemeUploadValidator(store).validate(build_zip(package_files()))

    assert plan.theme_id == "shop"
    assert plan.is_update is False
    assert plan.metadata.name == "Shop"
    assert plan.new_versions == ("1.0.0",)


def test_empty_archive_rejected(store):
    error = _invalid(store, {})
    assert error.code is ErrorCode.UPLOAD_INVALID
    assert "empty" in error.message


def test_only_cruft_rejected(store):
    error = _invalid(store, {"__MACOSX/shop/._theme.json": "x", ".DS_Store": "x"})
    assert "no relevant theme content" in error.message


def test_files_at_archive_root_rejected(store):
    error = _invalid(store, {"theme.json": "{}", "layout.liquid": ""})
    assert "single root folder" in error.message


def test_two_roots_rejected(store):
    files = package_files()
    files["other/readme.txt"] = "x"
    error = _invalid(store, files)
    assert "single root folder" in error.message


def test_hidden_and_macos_entries_are_ignored(store):
    files = package_files()
    files["__MACOSX/shop/._layout.liquid"] = "x"
    files["shop/.git/config"] = "x"
    files["shop/assets/.DS_Store"] = "x"

    plan = ThemeUploadValidator(store).validate(build_zip(files))
    assert plan.theme_id == "shop"


@pytest.mark.parametrize("missing", ["theme.json", "screenshot.png", "layout.liquid"])
def test_missing_required_file_named(store, themes_root, missing):
    files = package_files()
    del files[f"shop/{missing}"]

    error = _invalid(store, files)

    assert error.code is ErrorCode.UPLOAD_INVALID
    assert f"'{missing}'" in error.message
    assert not (themes_root / "shop").exists()


@pytest.mark.parametrize("directory", ["assets", "templates", "widgets"])
def test_missing_required_directory_named(store, directory):
    files = {name: content for name, content in package_files().items() if f"/{directory}/" not in name}
    files[f"shop/{directory}/"] = ""

    error = _invalid(store, files)
    assert f"Missing '{directory}' directory" in error.message


def test_unparseable_theme_json(store):
    files = package_files()
    files["shop/theme.json"] = "{nope"
    error = _invalid(store, files)
    assert error.code is ErrorCode.UPLOAD_INVALID
    assert "Failed to parse JSON" in error.message


def test_missing_metadata_fields_listed(store):
    files = package_files()
    files["shop/theme.json"] = json.dumps({"name": "Shop"})
    error = _invalid(store, files)
    assert "Missing required fields: version, author" in error.message


def test_invalid_version_format(store):
    files = package_files()
    files["shop/theme.json"] = json.dumps(theme_document("1.0"))
    error = _invalid(store, files)
    assert error.code is ErrorCode.UPLOAD_INVALID
    assert 'Invalid version format: "1.0"' in error.message


def test_unsafe_entry_rejected(store):
    files = package_files()
    files["shop/../escape.txt"] = "x"
    error = _invalid(store, files)
    assert "unsafe path" in error.message


def test_update_folder_rules(store):
    bad_name = package_files()
    bad_name["shop/updates/next/theme.json"] = json.dumps(theme_document("1.1.0"))
    assert "Invalid update folder name" in _invalid(store, bad_name).message

    no_json = package_files()
    no_json["shop/updates/1.1.0/assets/x.css"] = "x"
    assert "missing required theme.json" in _invalid(store, no_json).message

    mismatch = _with_update(package_files(), "1.1.0", declared="1.2.0")
    assert "version mismatch" in _invalid(store, mismatch).message


def test_install_new_theme(store, themes_root):
    files = package_files()
    files["shop/assets/.DS_Store"] = "x"

    result = ThemeInstaller(store).install(build_zip(files))

    theme_dir = themes_root / "shop"
    assert result.is_update is False
    assert result.added_versions == ["1.0.0"]
    assert "installed successfully" in result.message
    assert (theme_dir / "layout.liquid").exists()
    assert not (theme_dir / "assets" / ".DS_Store").exists()
    assert not (theme_dir / "latest").exists()
    assert [p.name for p in themes_root.iterdir()] == ["shop"]


def test_install_new_theme_with_layers_builds_latest(store, themes_root):
    files = _with_update(package_files(), "1.1.0", {"layout.liquid": "v1.1"})

    result = ThemeInstaller(store).install(build_zip(files))

    latest = themes_root / "shop" / "latest"
    assert result.added_versions == ["1.0.0", "1.1.0"]
    assert (latest / "layout.liquid").read_text(encoding="utf-8") == "v1.1"
    assert result.summary is not None
    assert result.summary.version == "1.1.0"


def test_install_update_adds_only_new_layers(store, themes_root):
    installer = ThemeInstaller(store)
    installer.install(build_zip(_with_update(package_files(), "1.1.0")))

    files = _with_update(package_files(), "1.1.0")
    files = _with_update(files, "1.2.0", {"assets/new.css": "new"})
    result = installer.install(build_zip(files))

    assert result.is_update is True
    assert result.added_versions == ["1.2.0"]
    assert "Theme update 'shop' v1.2.0 imported successfully." == result.message
    assert store.versions("shop") == ["1.0.0", "1.1.0", "1.2.0"]
    assert (themes_root / "shop" / "latest" / "assets" / "new.css").exists()


def test_same_version_twice_is_conflict(store):
    installer = ThemeInstaller(store)
    installer.install(build_zip(package_files()))

    with pytest.raises(ThemeForgeError) as excinfo:
        installer.install(build_zip(package_files()))

    assert excinfo.value.code is ErrorCode.VERSION_CONFLICT
    assert excinfo.value.family == "conflict"
    assert "already up to date" in excinfo.value.message


def test_base_version_mismatch_is_conflict(store, themes_root):
    ThemeInstaller(store).install(build_zip(package_files()))
    files = _with_update(package_files(version="2.0.0"), "2.1.0")

    with pytest.raises(ThemeForgeError) as excinfo:
        ThemeUploadValidator(store).validate(build_zip(files))

    assert excinfo.value.family == "conflict"
    assert "base version" in excinfo.value.message
    assert not (themes_root / "shop" / "updates").exists()


def test_failed_snapshot_rolls_back_new_layers(store, themes_root, add_layer):
    ThemeInstaller(store).install(build_zip(package_files()))
    add_layer("shop", "1.5.0", declared="1.4.0")
    files = _with_update(package_files(), "2.0.0")

    with pytest.raises(ThemeForgeError) as excinfo:
        ThemeInstaller(store).install(build_zip(files))

    assert excinfo.value.code is ErrorCode.SNAPSHOT_INCONSISTENT
    assert not (themes_root / "shop" / "updates" / "2.0.0").exists()
    assert (themes_root / "shop" / "updates" / "1.5.0").exists()
    assert not any(p.name.startswith(".staging-") for p in themes_root.iterdir())


def test_install_from_path(store, tmp_path, themes_root):
    archive = tmp_path / "shop.zip"
    archive.write_bytes(build_zip(package_files()))

    ThemeInstaller(store).install(archive)

    assert read_json(themes_root / "shop" / "theme.json")["version"] == "1.0.0"


def test_not_a_zip(store):
    with pytest.raises(ThemeForgeError) as excinfo:
        ThemeUploadValidator(store).validate(b"definitely not a zip")
    assert excinfo.value.code is ErrorCode.UPLOAD_INVALID


def test_update_folder_older_than_base_rejected(store, themes_root):
    files = _with_update(package_files(), "0.9.0")

    error = _invalid(store, files)

    assert error.code is ErrorCode.UPLOAD_INVALID
    assert "older than the base version 1.0.0" in error.message
    with pytest.raises(ThemeForgeError):
        ThemeInstaller(store).install(build_zip(files))
    assert not (themes_root / "shop").exists()
