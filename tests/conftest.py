from pathlib import Path

import pytest

from staticstamp.modules.fingerprint import generate
from staticstamp.modules.resolver import ServeConfig, StaticFiles


@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    """
    tmp_path/
      secret.txt            (outside the asset root)
      static/
        style.css
        js/app.js
        img/logo.png
    """
    (tmp_path / "secret.txt").write_text("top secret")

    root = tmp_path / "static"
    (root / "js").mkdir(parents=True)
    (root / "img").mkdir()
    (root / "style.css").write_text("body { color: red; }")
    (root / "js" / "app.js").write_text("console.log('hello');")
    (root / "img" / "logo.png").write_bytes(b"\x89PNG\r\n" + b"x" * 100)
    return root


@pytest.fixture
def table(asset_root: Path):
    return generate(asset_root)


@pytest.fixture
def config(asset_root: Path) -> ServeConfig:
    return ServeConfig.create(asset_root, "/static")


@pytest.fixture
def static_files(config: ServeConfig, table) -> StaticFiles:
    return StaticFiles(config=config, table=table)
