# vault/cli/main.py
"""
CLI for operating and inspecting a persistent vault: deposit, withdraw,
query balances, and verify or export the event journal.
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from vault.chain.vault import Vault
from vault.config import Settings
from vault.core.errors import VaultError
from vault.core.logging import configure_logging
from vault.core.units import format_ether, parse_ether
from vault.storage import SQLiteStorage
from vault.verify.verifier import JournalVerifier

app = typer.Typer(
    name="vault",
    help="Deposit, withdraw and audit balances in a persistent custodial vault",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(highlight=False)


class _State:
    settings: Settings = Settings()
    wei: bool = False


state = _State()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. --db flag (per command, then global)
    2. VAULT_DB_PATH environment variable
    3. Default: ~/.vault/vault.db
    """
    if db_flag:
        path = db_flag.resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path
    return state.settings.resolved_db_path()


def _parse_amount(raw: str) -> int:
    try:
        return int(raw) if state.wei else parse_ether(raw)
    except ValueError as e:
        console.print(f"[red]Invalid amount '{raw}': {e}[/]")
        raise typer.Exit(1)


def _fmt(amount: int) -> str:
    return f"{amount} wei" if state.wei else f"{format_ether(amount)} ETH"


def _open_vault(db: Optional[Path], vault_id: Optional[str]) -> Vault:
    db_path = get_db_path(db)
    try:
        return Vault(vault_id=vault_id or state.settings.vault_id, storage=str(db_path))
    except (VaultError, ValueError, sqlite3.DatabaseError) as e:
        console.print(f"[red]Failed to open vault: {str(e)}[/]")
        raise typer.Exit(1)


def _open_storage(db: Optional[Path]) -> SQLiteStorage:
    db_path = get_db_path(db)

    if not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Make a deposit first (creates/populates DB)")
        console.print("  • Set env var: export VAULT_DB_PATH=/path/to/your.db")
        console.print("  • Or use --db: vault vaults --db /custom/path.db")
        raise typer.Exit(1)

    try:
        return SQLiteStorage(db_path)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        console.print("[yellow]The file may be corrupted or not a valid SQLite DB.[/]")
        raise typer.Exit(1)


@app.callback()
def main(
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Path to SQLite database (overrides VAULT_DB_PATH env var)",
    ),
    vault_id: Optional[str] = typer.Option(
        None,
        "--vault",
        help="Vault id (overrides VAULT_ID env var)",
    ),
    wei: bool = typer.Option(False, "--wei", help="Read and print amounts as integer wei"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Operate a custodial vault backed by a tamper-evident event journal."""
    state.settings = Settings.from_env(db_path=db, vault_id=vault_id, log_level=log_level)
    state.wei = wei
    configure_logging(state.settings.log_level)


@app.command()
def deposit(
    account: str = typer.Argument(..., help="Depositing account"),
    amount: str = typer.Argument(..., help="Amount in ETH (or wei with --wei)"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
):
    """Deposit value into ACCOUNT."""
    value = _parse_amount(amount)
    with _open_vault(db, vault_id) as v:
        try:
            event = v.deposit(account, value)
        except VaultError as e:
            console.print(f"[red]Deposit rejected: {e}[/]")
            raise typer.Exit(1)
        console.print(f"[green]Deposit({account}, {_fmt(event.amount)})[/]")
        console.print(f"  Balance: {_fmt(v.get_balance(account))}")


@app.command()
def withdraw(
    account: str = typer.Argument(..., help="Withdrawing account"),
    amount: str = typer.Argument(..., help="Amount in ETH (or wei with --wei)"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
):
    """Withdraw value from ACCOUNT, up to its balance."""
    value = _parse_amount(amount)
    with _open_vault(db, vault_id) as v:
        try:
            event = v.withdraw(account, value)
        except VaultError as e:
            console.print(f"[red]Withdrawal failed: {e}[/]")
            console.print(f"  Balance: {_fmt(v.get_balance(account))}")
            raise typer.Exit(1)
        console.print(f"[green]Withdrawal({account}, {_fmt(event.amount)})[/]")
        console.print(f"  Balance: {_fmt(v.get_balance(account))}")


@app.command()
def balance(
    account: str = typer.Argument(..., help="Account to query"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
):
    """Show the balance of ACCOUNT (0 if never funded)."""
    with _open_vault(db, vault_id) as v:
        console.print(_fmt(v.get_balance(account)))


@app.command()
def total(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
):
    """Show total deposits currently held by the vault."""
    with _open_vault(db, vault_id) as v:
        console.print(_fmt(v.get_total_deposits()))


@app.command()
def vaults(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List all vaults with event counts and last activity."""
    with _open_storage(db) as storage:
        try:
            vault_list = storage.list_vaults()
        except sqlite3.OperationalError as e:
            console.print(f"[yellow]Database is empty or schema missing: {str(e)}[/]")
            raise typer.Exit(0)

        if not vault_list:
            console.print("[yellow]No vaults found in database.[/]")
            console.print("  (DB exists but no events yet)")
            return

        table = Table(title="Vaults")
        table.add_column("Vault ID")
        table.add_column("Events")
        table.add_column("Last Activity")

        for vid in vault_list:
            count = storage.get_event_count(vid)
            last_ts = storage.get_latest_timestamp(vid) or "—"
            table.add_row(vid, str(count), last_ts)

    console.print(table)


@app.command()
def events(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent events to show"),
):
    """Show the most recent events of a vault."""
    vid = vault_id or state.settings.vault_id
    with _open_storage(db) as storage:
        evts = storage.query_events(vid, limit=limit)

    if not evts:
        console.print(f"[yellow]No events found for vault '{vid}'[/]")
        return

    for evt in evts:
        console.print(f"[bold cyan]{evt.sequence:4d} | {evt.timestamp} | {evt.kind:10} | {evt.account}[/]")
        console.print(f"  {_fmt(evt.amount)}")


@app.command()
def verify(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
):
    """Verify the journal of a vault (hash chain + balance replay)."""
    vid = vault_id or state.settings.vault_id
    with _open_storage(db) as storage:
        if storage.get_event_count(vid) == 0:
            console.print(f"[yellow]No events found for vault '{vid}'[/]")
            raise typer.Exit(1)

        result = JournalVerifier().verify_from_storage(vid, storage)

    if result.is_valid:
        console.print(f"[green]✓ Vault '{vid}' journal is valid[/]")
        console.print(f"  {result.message}")
        console.print(f"  Accounts: {len(result.balances)}, total deposits: {_fmt(result.total)}")
    else:
        console.print(f"[red]✗ Verification failed for vault '{vid}'[/]")
        for failure in result.failures:
            console.print(f"  • [{failure.index}] {failure.category}: {failure.message}")
        raise typer.Exit(1)


@app.command()
def export(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    vault_id: Optional[str] = typer.Option(None, "--vault", hidden=True),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: <vault_id>.jsonl)"),
):
    """Export a vault journal as JSONL (one event per line)."""
    vid = vault_id or state.settings.vault_id
    with _open_storage(db) as storage:
        try:
            evts = storage.load_events(vid)
        except (VaultError, sqlite3.DatabaseError) as e:
            console.print(f"[red]Failed to load vault '{vid}': {str(e)}[/]")
            raise typer.Exit(1)

    if not evts:
        console.print(f"[yellow]No events found for vault '{vid}'[/]")
        raise typer.Exit(0)

    out_path = output or Path(f"{vid}.jsonl")
    with open(out_path, "w", encoding="utf-8") as f:
        for evt in evts:
            json.dump(evt.to_dict(), f, separators=(",", ":"))
            f.write("\n")

    console.print(f"[green]Exported {len(evts)} events to {out_path}[/]")


if __name__ == "__main__":
    app()
