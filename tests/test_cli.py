from pathlib import Path

import pytest
from click.testing import CliRunner

from lattice.cli import cli


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("LATTICE_CONTENT_DIR", "LATTICE_OUTPUT_DIR", "LATTICE_DRAFTS"):
        monkeypatch.delenv(name, raising=False)


def create_project(tmp_path: Path, files: dict | None = None) -> Path:
    defaults = {
        "lattice.yaml": "site:\n  title: Test\nlistings:\n  - section: blog\n    per_page: 1\n",
        "content/index.md": "---\ntitle: Home\n---\nHi",
        "content/blog/one.md": "---\ntitle: One\nweight: 1\n---\n",
        "content/blog/two.md": "---\ntitle: Two\nweight: 2\ndraft: true\n---\n",
        "templates/page.html": "<body>{{ title }}</body>",
    }
    defaults.update(files or {})
    for rel, text in defaults.items():
        target = tmp_path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    return tmp_path


def test_build_command(tmp_path, monkeypatch):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 0, result.output
    assert "Built 3 pages" in result.output
    assert (tmp_path / "public" / "blog" / "one" / "index.html").exists()
    assert not (tmp_path / "public" / "blog" / "two").exists()


def test_build_command_with_drafts_and_output(tmp_path, monkeypatch):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build", "--drafts", "--output", "dist"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "dist" / "blog" / "two" / "index.html").exists()
    assert (tmp_path / "dist" / "blog" / "page" / "2" / "index.html").exists()


def test_build_command_reports_render_failures(tmp_path, monkeypatch):
    create_project(
        tmp_path,
        {
            "content/broken.md": "---\ntemplate: missing\n---\n",
        },
    )
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 1
    assert "Template not found: missing" in result.output
    assert "(1 failed)" in result.output
    assert (tmp_path / "public" / "index.html").exists()


def test_build_command_reports_parse_errors(tmp_path, monkeypatch):
    create_project(tmp_path, {"content/bad.md": "---\ntitle: [oops\n---\n"})
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "content/bad.md" in result.output


def test_build_command_reports_config_errors(tmp_path, monkeypatch):
    create_project(tmp_path, {"lattice.yaml": "workers: 0\n"})
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["build"])

    assert result.exit_code == 1
    assert "'workers' must be a positive integer" in result.output


def test_routes_command(tmp_path, monkeypatch):
    create_project(tmp_path)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["routes"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert "/\tpage\tindex.md" in lines
    assert "/blog/one/\tpage\tblog/one.md" in lines
    assert "/blog/\tlisting\t-" in lines
    assert not any("two" in line for line in lines)


def test_serve_command_uses_config_port(tmp_path, monkeypatch):
    create_project(tmp_path, {"lattice.yaml": "port: 4100\n"})
    monkeypatch.chdir(tmp_path)
    started = {}

    class FakeServer:
        def __init__(self, config, host, http_port, ws_port):
            started["config"] = config
            self.http_port = http_port or config.port

        def start(self):
            started["running"] = True

    monkeypatch.setattr("lattice.server.DevServer", FakeServer)

    result = CliRunner().invoke(cli, ["serve", "--drafts"])

    assert result.exit_code == 0, result.output
    assert "http://127.0.0.1:4100" in result.output
    assert started["running"] is True
    assert started["config"].include_drafts is True


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "lattice" in result.output
