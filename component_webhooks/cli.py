"""Inspect a package secret manifest and report webhook state."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys
from typing import Any, Dict, Sequence

import yaml

from component_webhooks.api.admission import shared_object_from_manifest
from component_webhooks.status.codec import PayloadDecodeError
from component_webhooks.status.dispatcher import find_pending, needs_wait
from component_webhooks.status.model import load_status


def inspect_manifest(manifest: Dict[str, Any], *, webhook_name: str, payload_key: str) -> Dict[str, Any]:
    obj = shared_object_from_manifest(manifest)
    raw = obj.data.get(payload_key)
    status, mode = load_status(raw)
    pending = find_pending(status, webhook_name)

    components = []
    for component in status.deployed_components:
        wait = needs_wait(status, component.name)
        components.append(
            {
                "name": component.name,
                "status": component.status,
                "needs_wait": wait.needs_wait,
                "wait_seconds": wait.wait_seconds,
                "webhook": wait.webhook_name or None,
            }
        )

    return {
        "secret": str(obj.ref),
        "package": status.name,
        "generation": status.generation,
        "encoding": mode.value,
        "webhook": webhook_name,
        "pending": [work.component for work in pending],
        "components": components,
    }


def _load_manifest(path: str) -> Dict[str, Any]:
    content = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    parsed = yaml.safe_load(content) or {}
    if not isinstance(parsed, dict):
        raise ValueError("Secret manifest must be a YAML or JSON object")
    return parsed


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Component webhook tooling")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Report webhook state of a package secret manifest")
    inspect_parser.add_argument("manifest", help="Path to a secret manifest (YAML or JSON), or - for stdin")
    inspect_parser.add_argument("--webhook", default="test-webhook", help="Webhook name to evaluate")
    inspect_parser.add_argument("--payload-key", default="data", help="Secret data key holding the package payload")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        manifest = _load_manifest(args.manifest)
        report = inspect_manifest(manifest, webhook_name=args.webhook, payload_key=args.payload_key)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        # PayloadDecodeError is a ValueError.
        kind = "decode_error" if isinstance(exc, PayloadDecodeError) else "error"
        print(json.dumps({kind: str(exc)}), file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
