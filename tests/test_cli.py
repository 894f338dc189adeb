import json

import yaml

from component_webhooks import cli
from tests.reconciler.conftest import encode, package_payload


def _manifest(payload: dict) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "zarf-package-test-pkg", "namespace": "zarf"},
        "data": {"data": encode(payload)},
    }


def test_inspect_manifest_reports_pending_and_waiting_components() -> None:
    payload = package_payload(
        generation=5,
        components=(("db", "Deploying"), ("api", "Deploying")),
        webhooks={
            "api": {
                "test-webhook": {
                    "name": "test-webhook",
                    "status": "Running",
                    "observedGeneration": 5,
                    "waitDurationSeconds": 60,
                }
            }
        },
    )

    report = cli.inspect_manifest(_manifest(payload), webhook_name="test-webhook", payload_key="data")

    assert report["secret"] == "zarf/zarf-package-test-pkg"
    assert report["package"] == "test-pkg"
    assert report["generation"] == 5
    assert report["encoding"] == "base64"
    assert report["pending"] == ["db"]
    by_name = {component["name"]: component for component in report["components"]}
    assert by_name["api"]["needs_wait"] is True
    assert by_name["api"]["wait_seconds"] == 60
    assert by_name["db"]["needs_wait"] is False
    assert by_name["db"]["webhook"] is None


def test_main_prints_report_for_yaml_manifest(tmp_path, capsys) -> None:
    path = tmp_path / "secret.yaml"
    path.write_text(yaml.safe_dump(_manifest(package_payload())), encoding="utf-8")

    exit_code = cli.main(["inspect", str(path)])

    assert exit_code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["pending"] == ["db"]


def test_main_reports_decode_errors(tmp_path, capsys) -> None:
    path = tmp_path / "secret.yaml"
    manifest = _manifest(package_payload())
    manifest["data"]["data"] = "{broken"
    path.write_text(yaml.safe_dump(manifest), encoding="utf-8")

    exit_code = cli.main(["inspect", str(path)])

    assert exit_code == 1
    assert "decode_error" in json.loads(capsys.readouterr().err)


def test_main_reports_missing_file(tmp_path, capsys) -> None:
    exit_code = cli.main(["inspect", str(tmp_path / "missing.yaml")])

    assert exit_code == 1
    assert "error" in json.loads(capsys.readouterr().err)
