import pytest

from module_installer.errors import ManifestError
from module_installer.manifests import load_manifest, parse_manifest, parse_package


def test_load_manifest(manifest_file):
    m = load_manifest(manifest_file)
    assert [p.name for p in m.packages] == [
        "com.example.common",
        "com.example.core",
        "com.example.ui",
        "com.example.net",
        "com.example.offline",
    ]
    core = m.packages[1]
    assert core.required
    assert core.dependencies == ("com.example.common",)
    assert core.order == 10
    assert core.tags == ("Core",)
    assert m.packages[0].git_url is None
    assert m.packages[3].repulsions == ("com.example.offline",)
    assert [sp.name for sp in m.system_paths] == ["AOT_LIBRARY_PATH", "OPTIONAL_PATH"]
    assert m.system_paths[0].required
    assert m.aot_libraries == ["mscorlib.dll"]


def test_json_manifest_is_accepted(tmp_path):
    path = tmp_path / "manifest.json"
    path.write_text('{"packages": [{"name": "a", "dependencies": ["b"]}, "b"]}', encoding="utf-8")
    m = load_manifest(path)
    assert [p.name for p in m.packages] == ["a", "b"]


def test_plain_string_entry():
    assert parse_package("com.example.x").name == "com.example.x"


@pytest.mark.parametrize(
    "raw",
    [
        {"display_name": "no name"},
        {"name": "a", "dependencies": {"b": 1}},
        42,
    ],
)
def test_bad_package_entries(raw):
    with pytest.raises(ManifestError):
        parse_package(raw)


def test_bad_manifest_shapes():
    with pytest.raises(ManifestError):
        parse_manifest([])
    with pytest.raises(ManifestError):
        parse_manifest({"packages": "a"})
    with pytest.raises(ManifestError):
        parse_manifest({"packages": [], "system_paths": [{"default": "x"}]})


def test_missing_empty_and_invalid_manifest(tmp_path):
    with pytest.raises(ManifestError):
        load_manifest(tmp_path / "missing.yaml")

    empty = tmp_path / "empty.yaml"
    empty.write_text("packages: []\n", encoding="utf-8")
    with pytest.raises(ManifestError, match="no packages"):
        load_manifest(empty)

    broken = tmp_path / "broken.yaml"
    broken.write_text("packages: [\n", encoding="utf-8")
    with pytest.raises(ManifestError):
        load_manifest(broken)
