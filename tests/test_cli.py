import json
import os
from pathlib import Path
import subprocess
import sys


def _base_env(tmp_path: Path) -> dict[str, str]:
    env = os.environ.copy()
    env["WIKIGEN_DATABASE_URL"] = f"sqlite:///{tmp_path / 'cli.db'}"
    env["WIKIGEN_LOG_LEVEL"] = "info"
    return env


def _write_config(tmp_path: Path, **overrides: object) -> Path:
    config = {
        "characterProcessing": {
            "batchSize": 5,
            "delayMs": 0,
            "maxRetries": 0,
            "outputPath": str(tmp_path / "out" / "characters.ts"),
            "scrapingFilePath": str(tmp_path / "Scraping.md"),
            "fallbackListPath": str(tmp_path / "list.json"),
            # discard port; every fetch is refused
            "apiUrl": "http://127.0.0.1:9/entry_page",
            "requestTimeoutSeconds": 2,
            **overrides,
        }
    }
    path = tmp_path / "processing-config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path


def _run(tmp_path: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "wikigen.main", *args],
        cwd=Path(__file__).resolve().parents[1],
        env=_base_env(tmp_path),
        check=False,
        capture_output=True,
        text=True,
    )


def test_cli_returns_nonzero_when_manifest_is_missing(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)

    proc = _run(tmp_path, "--config", str(config_path))

    assert proc.returncode == 1
    assert "status=failed" in proc.stdout


def test_cli_returns_nonzero_on_invalid_config(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, batchSize=0)

    proc = _run(tmp_path, "--config", str(config_path))

    assert proc.returncode == 1
    assert "batchSize" in proc.stdout


def test_cli_writes_artifact_despite_item_failures(tmp_path: Path) -> None:
    (tmp_path / "Scraping.md").write_text("- [ghost](https://wiki.example/404) - pageId: 404\n", encoding="utf-8")
    config_path = _write_config(tmp_path)

    proc = _run(tmp_path, "-c", str(config_path))

    assert proc.returncode == 0
    assert "status=succeeded" in proc.stdout
    assert "failed id=ghost page_id=404 stage=fetch" in proc.stdout
    artifact = (tmp_path / "out" / "characters.ts").read_text(encoding="utf-8")
    assert artifact.endswith("export default [] as Character[];\n")
    assert (tmp_path / "out" / "characters-processing-report.json").exists()


def test_cli_help(tmp_path: Path) -> None:
    proc = _run(tmp_path, "--help")

    assert proc.returncode == 0
    assert "--config" in proc.stdout


def test_cli_reports_wrongly_typed_setting(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, minSuccessRate="0.9")

    proc = _run(tmp_path, "--config", str(config_path))

    assert proc.returncode == 1
    assert "status=failed" in proc.stdout
    assert "minSuccessRate" in proc.stdout
    assert "Traceback" not in proc.stderr
