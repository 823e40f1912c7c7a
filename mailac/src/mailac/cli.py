"""mailac command-line interface.

What:
  Provide a Typer application for feeding mail through the peer-state engine
  and inspecting the result: ``process``, ``recommend``, ``peers``,
  ``forget``, ``parse-header``, ``compose`` and ``account-add``.

Why:
  Operators and integration scripts need the engine without a mail client:
  replaying ``.eml`` archives to bootstrap peer state, checking what the
  compose window would recommend, or auditing the stored records.

How:
  A callback resolves the runtime configuration (``--config`` or the usual
  discovery chain) and stores it on the Typer context. Each command loads the
  record set through :class:`~mailac.config.state_store.StateStore`, runs the
  core operation, saves when it changed something, and prints JSON lines.

Interfaces:
  ``app`` (Typer application), :func:`main`.

Invariants & Safety:
  - Exit codes: ``0`` success, ``1`` failure.
  - Key material is never printed.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer

from .accounts import create_account
from .config.loader import ConfigLoadError, load_runtime_config
from .config.schema import RuntimeConfig
from .config.state_store import StateStore
from .core.errors import AutocryptError, ParseError
from .core.gossip import message_recipients
from .core.header import parse_header
from .core.outgoing import prepare_outgoing_with_config
from .core.peers import PeerRecord, Preference
from .core.recommend import aggregate, single_recommendation
from .core.update import process_incoming
from .host.email_host import EmailMessageHost
from .keys import GnuPGBackend
from .utils.logging import get_logger
from .utils.mime import parse_message


app = typer.Typer(help="Autocrypt peer-state engine")

LOGGER = get_logger("mailac.cli")


def _runtime(ctx: typer.Context) -> RuntimeConfig:
    return ctx.obj["runtime"]


def _state(ctx: typer.Context) -> StateStore:
    return StateStore(_runtime(ctx).paths.state_file)


def _peer_summary(record: PeerRecord) -> dict:
    return {
        "address": record.address,
        "last_seen": record.last_seen.isoformat() if record.last_seen else None,
        "timestamp": record.timestamp.isoformat() if record.timestamp else None,
        "preference": record.preference.value if record.preference else None,
        "has_key": record.public_key is not None,
        "gossip_timestamp": record.gossip_timestamp.isoformat() if record.gossip_timestamp else None,
        "has_gossip_key": record.gossip_key is not None,
        "deactivated": record.deactivated,
    }


def _emit(payload: dict) -> None:
    typer.echo(json.dumps(payload, sort_keys=True))


@app.callback()
def _configure(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    try:
        runtime = load_runtime_config(config, reload=config is not None)
    except ConfigLoadError as exc:
        LOGGER.error("Runtime configuration failed", error=str(exc))
        raise typer.Exit(code=1) from exc
    ctx.obj = {"runtime": runtime}


@app.command("process")
def process(
    ctx: typer.Context,
    files: List[Path] = typer.Argument(..., help="RFC 822 message files"),
) -> None:
    """Feed messages through the update state machine and save the result."""

    runtime = _runtime(ctx)
    state = _state(ctx)
    try:
        store = state.load()
        for path in files:
            try:
                raw = path.read_bytes()
            except OSError as exc:
                LOGGER.error("Cannot read message", path=str(path), error=str(exc))
                raise typer.Exit(code=1) from exc
            outcome = process_incoming(
                store,
                EmailMessageHost(parse_message(raw)),
                gossip_enabled=runtime.gossip.receive,
            )
            _emit(
                {
                    "file": str(path),
                    "sender": outcome.sender,
                    "action": outcome.action.value,
                    "created": outcome.created,
                    "gossip": outcome.gossip,
                }
            )
        state.save(store)
    except AutocryptError as exc:
        LOGGER.error("Processing failed", error=str(exc))
        raise typer.Exit(code=1) from exc


@app.command("recommend")
def recommend(
    ctx: typer.Context,
    sender: str = typer.Argument(..., help="Sending account address"),
    recipients: List[str] = typer.Argument(..., help="Recipient addresses"),
) -> None:
    """Print the aggregate and per-recipient recommendation."""

    runtime = _runtime(ctx)
    try:
        store = _state(ctx).load()
    except AutocryptError as exc:
        LOGGER.error("Cannot load state", error=str(exc))
        raise typer.Exit(code=1) from exc
    per_recipient = {
        address: single_recommendation(
            store, sender, address, staleness_days=runtime.recommendation.staleness_days
        )
        for address in recipients
    }
    _emit(
        {
            "recommendation": aggregate(per_recipient.values()).value,
            "recipients": {address: value.value for address, value in per_recipient.items()},
        }
    )


@app.command("peers")
def peers(ctx: typer.Context) -> None:
    """List stored peer records without key material."""

    try:
        store = _state(ctx).load()
    except AutocryptError as exc:
        LOGGER.error("Cannot load state", error=str(exc))
        raise typer.Exit(code=1) from exc
    for record in store.peers():
        _emit(_peer_summary(record))


@app.command("forget")
def forget(ctx: typer.Context, address: str = typer.Argument(..., help="Peer address")) -> None:
    """Remove a peer record."""

    state = _state(ctx)
    try:
        store = state.load()
        if not store.forget_peer(address):
            LOGGER.warning("Unknown peer", address=address)
            raise typer.Exit(code=1)
        state.save(store)
    except AutocryptError as exc:
        LOGGER.error("Cannot update state", error=str(exc))
        raise typer.Exit(code=1) from exc
    _emit({"forgotten": address})


@app.command("parse-header")
def parse_header_command(value: str = typer.Argument(..., help="Autocrypt header value")) -> None:
    """Parse an Autocrypt header value and print its content."""

    try:
        parsed = parse_header(value)
    except ParseError as exc:
        LOGGER.warning("Invalid header", reason=str(exc))
        raise typer.Exit(code=1) from exc
    _emit(
        {
            "addr": parsed.address,
            "prefer-encrypt": parsed.preference.value if parsed.preference else None,
            "keydata_bytes": len(parsed.keydata),
        }
    )


@app.command("account-add")
def account_add(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Account address"),
    prefer: Preference = typer.Option(Preference.NOPREFERENCE, "--prefer", help="Announced preference"),
    name: Optional[str] = typer.Option(None, help="Real name for the generated key"),
    gnupg_home: Optional[Path] = typer.Option(None, "--gnupg-home", help="GnuPG home directory"),
    replace: bool = typer.Option(False, help="Replace an existing account"),
) -> None:
    """Generate a key with GnuPG and register the account."""

    state = _state(ctx)
    try:
        store = state.load()
        account = create_account(
            store,
            GnuPGBackend(gnupg_home),
            address,
            prefer,
            name=name,
            replace=replace,
        )
        state.save(store)
    except AutocryptError as exc:
        LOGGER.error("Account setup failed", address=address, error=str(exc))
        raise typer.Exit(code=1) from exc
    _emit(
        {
            "address": account.address,
            "fingerprint": account.key_fingerprint,
            "preference": account.preference.value,
        }
    )


@app.command("compose")
def compose(
    ctx: typer.Context,
    draft: Path = typer.Argument(..., help="RFC 822 draft to decorate"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the decorated draft here"),
    encrypt: bool = typer.Option(False, "--encrypt", help="The user asked for encryption"),
    gnupg_home: Optional[Path] = typer.Option(None, "--gnupg-home", help="GnuPG home directory"),
) -> None:
    """Attach the Autocrypt header to a draft and print the encryption decision."""

    runtime = _runtime(ctx)
    try:
        raw = draft.read_bytes()
    except OSError as exc:
        LOGGER.error("Cannot read draft", path=str(draft), error=str(exc))
        raise typer.Exit(code=1) from exc
    host = EmailMessageHost(parse_message(raw))
    sender = host.get_header("From") or ""
    try:
        store = _state(ctx).load()
        decision = prepare_outgoing_with_config(
            store,
            host,
            GnuPGBackend(gnupg_home),
            sender,
            message_recipients(host),
            runtime,
            encrypt_requested=encrypt,
        )
        if output is not None:
            output.write_bytes(host.message.as_bytes())
    except AutocryptError as exc:
        LOGGER.error("Compose failed", path=str(draft), error=str(exc))
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        LOGGER.error("Cannot write draft", path=str(output), error=str(exc))
        raise typer.Exit(code=1) from exc
    _emit(
        {
            "recommendation": decision.recommendation.value,
            "recipients": {address: value.value for address, value in decision.per_recipient.items()},
            "encrypted": decision.encrypted,
            "autocrypt_header": decision.autocrypt_header is not None,
            "gossip": decision.gossip_sent,
        }
    )


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
