"""End-to-end tests driving the ``mailac`` CLI as a subprocess.

What:
  Launch ``python -m mailac.cli`` against a temporary configuration and state
  file, replay a message archive and inspect the resulting peer state.

Why:
  Confirms that configuration discovery, persistence and the JSON output
  contract work when invoked the way operators run the tool.

Invariants & Safety:
  - Tests run against the local source tree, not an installed package.
  - Key material never appears on stdout.
"""

import base64
import json
import os
import pathlib
import subprocess
import sys
import textwrap


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
KEY = bytes(range(200))
KEYDATA = base64.b64encode(KEY).decode("ascii")
FOLDED = "\n ".join([""] + textwrap.wrap(KEYDATA, 76))


def _run_cli(config: pathlib.Path, *args: str) -> subprocess.CompletedProcess[str]:
    cmd = [sys.executable, "-m", "mailac.cli", "--config", str(config), *args]
    env = dict(os.environ)
    env["PYTHONPATH"] = f"{PROJECT_ROOT / 'mailac' / 'src'}:{env.get('PYTHONPATH', '')}"
    return subprocess.run(cmd, text=True, capture_output=True, cwd=PROJECT_ROOT, env=env)


def _write_config(tmp_path: pathlib.Path) -> pathlib.Path:
    config = tmp_path / "config.yaml"
    config.write_text(
        "version: 1\n"
        f"paths:\n  state_file: {tmp_path / 'state' / 'state.yaml'}\n"
        "gossip:\n  receive: true\n  send: true\n"
    )
    return config


def _write_message(path: pathlib.Path, *, autocrypt: bool, date: str) -> pathlib.Path:
    lines = [
        "From: Bob <bob@example.org>",
        "To: me@example.org, carol@example.org",
        f"Date: {date}",
        "Subject: hi",
    ]
    if autocrypt:
        lines.append(f"Autocrypt: addr=bob@example.org; prefer-encrypt=mutual; keydata={FOLDED}")
        lines.append(f"Autocrypt-Gossip: addr=carol@example.org; keydata={FOLDED}")
    lines.extend(["Content-Type: text/plain", "", "hello", ""])
    path.write_text("\n".join(lines))
    return path


def _lines(stdout: str) -> list:
    return [json.loads(line) for line in stdout.splitlines() if line.strip()]


def test_cli_process_and_inspect(tmp_path: pathlib.Path) -> None:
    config = _write_config(tmp_path)
    first = _write_message(tmp_path / "1.eml", autocrypt=True, date="Mon, 05 Oct 2026 10:00:00 +0000")
    second = _write_message(tmp_path / "2.eml", autocrypt=False, date="Tue, 06 Oct 2026 10:00:00 +0000")

    result = _run_cli(config, "process", str(first), str(second))
    assert result.returncode == 0, result.stderr
    outcomes = _lines(result.stdout)
    assert [item["action"] for item in outcomes] == ["updated", "deactivated"]
    assert outcomes[0]["created"] is True
    assert outcomes[0]["gossip"] == ["carol@example.org"]
    assert (tmp_path / "state" / "state.yaml").exists()

    result = _run_cli(config, "peers")
    assert result.returncode == 0, result.stderr
    peers = {item["address"]: item for item in _lines(result.stdout)}
    assert peers["bob@example.org"]["has_key"] is True
    assert peers["bob@example.org"]["deactivated"] is True
    assert peers["carol@example.org"]["has_gossip_key"] is True
    assert peers["carol@example.org"]["last_seen"] is None
    assert KEYDATA[:40] not in result.stdout

    result = _run_cli(config, "recommend", "me@example.org", "bob@example.org", "dave@example.org")
    assert result.returncode == 0, result.stderr
    [verdict] = _lines(result.stdout)
    assert verdict["recommendation"] == "disabled"
    assert verdict["recipients"]["bob@example.org"] == "discourage"

    result = _run_cli(config, "forget", "bob@example.org")
    assert result.returncode == 0, result.stderr
    result = _run_cli(config, "forget", "bob@example.org")
    assert result.returncode == 1


def test_cli_parse_header(tmp_path: pathlib.Path) -> None:
    config = _write_config(tmp_path)
    result = _run_cli(config, "parse-header", f"addr=Bob@Example.org; keydata={KEYDATA}")
    assert result.returncode == 0, result.stderr
    [parsed] = _lines(result.stdout)
    assert parsed == {"addr": "bob@example.org", "prefer-encrypt": None, "keydata_bytes": len(KEY)}

    result = _run_cli(config, "parse-header", "addr=bob@example.org")
    assert result.returncode == 1
    assert result.stdout == ""


def test_cli_rejects_invalid_config(tmp_path: pathlib.Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("paths: [\n")
    result = _run_cli(config, "peers")
    assert result.returncode == 1
    assert "Runtime configuration failed" in result.stderr
