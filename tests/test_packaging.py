from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def project():
    with open(ROOT / "pyproject.toml", "rb") as fh:
        return tomllib.load(fh)


def test_every_backend_module_is_installed(project):
    listed = set(project["tool"]["setuptools"]["py-modules"])
    on_disk = {p.stem for p in (ROOT / "backend").glob("*.py")}
    assert listed == on_disk


def test_readme_points_at_a_shipped_file(project):
    readme = project["project"].get("readme")
    if readme is not None:
        assert (ROOT / readme).is_file()
        assert readme.lower().startswith("readme")
