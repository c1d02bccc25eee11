"""Statement preview and import commands."""

import click
from ledgerimport.cli.account_resolution import resolve_account_or_exit
from ledgerimport.cli.error_handling import handle_domain_error
from ledgerimport.domain.account import AccountService
from ledgerimport.domain.entities import MAPPING_SLOTS, FieldMapping, PreviewTransaction
from ledgerimport.domain.errors import DomainError
from ledgerimport.domain.session import ImportSession, ImportState
from ledgerimport.utils.amount_parser import integer_to_amount
from ledgerimport.utils.date_parser import DATE_FORMATS


def import_options(func):
    """Options shared by preview and import."""
    options = [
        click.argument("statement_file", type=click.Path(exists=True, dir_okay=False)),
        click.option("--account", help="Account name, number or ID to import into"),
        click.option("--all-accounts", is_flag=True, help="Attribute each row to an account"),
        click.option("--delimiter", help="Column delimiter (default: ',' or tab for .tsv)"),
        click.option("--skip-lines", type=click.IntRange(min=0), help="Lines to skip before the data"),
        click.option("--no-header", is_flag=True, help="First row is data, not column names"),
        click.option("--date-format", type=click.Choice(DATE_FORMATS), help="Date format of the file"),
        click.option("--flip", is_flag=True, help="Invert the sign of amounts"),
        click.option("--no-flip", is_flag=True, help="Do not invert amounts, even if saved"),
        click.option("--split", is_flag=True, help="Amounts are in separate inflow/outflow columns"),
        click.option("--in-out", "in_out", metavar="FIELD", help="Column telling inflow from outflow"),
        click.option("--out-value", metavar="TOKEN", help="Value of the --in-out column that marks an outflow"),
        click.option("--multiplier", help="Multiply amounts by this factor"),
        click.option("--no-reconcile", is_flag=True, help="Add every row without matching existing transactions"),
        click.option("--no-notes", is_flag=True, help="Do not import memos as notes"),
        click.option("--no-clear", is_flag=True, help="Do not mark imported transactions as cleared"),
        click.option("--no-payee-fallback", is_flag=True, help="Do not use the memo as payee when missing (OFX/CAMT)"),
        click.option("--qif-splits", type=click.Choice(["aggregate", "expand"]), help="How QIF split lines are imported"),
        click.option("--map", "mappings", multiple=True, metavar="SLOT=COLUMN", help=f"Map a column to one of: {', '.join(MAPPING_SLOTS)}"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _overrides(opts: dict) -> dict:
    overrides = {}
    if opts["delimiter"] is not None:
        overrides["delimiter"] = "\t" if opts["delimiter"] in ("\\t", "tab") else opts["delimiter"]
    if opts["skip_lines"] is not None:
        overrides["skip_lines"] = opts["skip_lines"]
    if opts["no_header"]:
        overrides["has_header_row"] = False
    if opts["date_format"] is not None:
        overrides["date_format"] = opts["date_format"]
    if opts["flip"] or opts["no_flip"]:
        overrides["flip_amount"] = opts["flip"]
    if opts["in_out"] is not None:
        overrides["in_out_mode"] = True
    if opts["out_value"] is not None:
        overrides["out_value"] = opts["out_value"]
    if opts["multiplier"] is not None:
        overrides["multiplier"] = opts["multiplier"]
    if opts["no_reconcile"]:
        overrides["reconcile"] = False
    if opts["no_notes"]:
        overrides["import_notes"] = False
    if opts["no_clear"]:
        overrides["clear_on_import"] = False
    if opts["no_payee_fallback"]:
        overrides["fallback_missing_payee"] = False
    if opts["qif_splits"] is not None:
        overrides["qif_split_mode"] = opts["qif_splits"]
    return overrides


def _parse_pairs(ctx: click.Context, values, what: str) -> list[tuple[str, str]]:
    pairs = []
    for value in values:
        key, sep, target = value.partition("=")
        if not sep or not key.strip() or not target.strip():
            click.echo(f"Error: Invalid {what} '{value}', expected KEY=VALUE", err=True)
            ctx.exit(1)
        pairs.append((key.strip(), target.strip()))
    return pairs


def _mapping_with(ctx: click.Context, mapping: FieldMapping, pairs, in_out: str | None) -> FieldMapping:
    values = {slot: getattr(mapping, slot) for slot in MAPPING_SLOTS}
    for slot, column in pairs:
        slot = "in_out" if slot == "inOut" else slot
        if slot not in MAPPING_SLOTS:
            click.echo(f"Error: Unknown mapping slot '{slot}'", err=True)
            ctx.exit(1)
        values[slot] = column
        if slot in ("inflow", "outflow"):
            values["amount"] = None
        elif slot == "amount":
            values["inflow"] = values["outflow"] = None
    if in_out is not None:
        values["in_out"] = in_out
    return FieldMapping(**values)


def open_session(ctx: click.Context, statement_file: str, opts: dict) -> ImportSession:
    """Create a session for the file with the command-line settings applied."""
    db = ctx.obj["db"]
    account_service = AccountService(db)

    if opts["all_accounts"] == (opts["account"] is not None):
        click.echo("Error: Specify exactly one of --account or --all-accounts", err=True)
        ctx.exit(1)
    account_id = None
    if opts["account"] is not None:
        account_id = resolve_account_or_exit(ctx, account_service, opts["account"])

    pairs = _parse_pairs(ctx, opts["mappings"], "mapping")
    session = ImportSession(db)
    try:
        state = session.open(statement_file, account_id, _overrides(opts))
        if opts["split"] and not state.mapping.split_mode:
            state = session.set_split_mode(True)
        if pairs or opts["in_out"] is not None:
            mapping = _mapping_with(ctx, state.mapping, pairs, opts["in_out"])
            session.update_settings(field_mapping=mapping)
    except (DomainError, ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)
    return session


def _marker(row: PreviewTransaction, reconcile: bool) -> str:
    if not reconcile:
        return "+"
    if not row.selected:
        return "=" if row.ignored else "-"
    if row.ignored or (row.existing and not row.selected_merge):
        return "!"
    if row.existing:
        return "M"
    return "+"


def print_preview(state: ImportState, account_names: dict[int, str]) -> None:
    """Print preview rows, parse errors and account conflicts."""
    reconcile = state.settings.reconcile
    click.echo(f"\nPreview of {state.filepath} ({state.file_type}):")
    click.echo("-" * 90)
    for row in state.transactions:
        amount = integer_to_amount(row.amount) if row.amount is not None else ""
        account = account_names.get(row.account_id, "") if row.account_id is not None else ""
        if row.is_matched_existing:
            click.echo(
                f"      ~ {row.date} {amount:>12} | {(row.payee or '')[:30]:30s} | existing #{row.existing_match_id}"
            )
            continue
        click.echo(
            f"{row.transient_id:4d}  {_marker(row, reconcile)} {row.date} {amount:>12} | "
            f"{(row.payee or '')[:30]:30s} | {account}"
        )
    if not state.transactions:
        click.echo("No transactions.")

    if state.preview_error is not None:
        click.echo(f"\nStopped at row {state.preview_error.transient_id}: {state.preview_error}", err=True)

    if state.conflicts:
        click.echo("\nRows matching more than one account:")
        for transient_id, conflict in sorted(state.conflicts.items()):
            names = ", ".join(
                f"{account_names.get(a, a)} (ID: {a})" for a in sorted(conflict.candidate_account_ids)
            )
            click.echo(f"  Row {transient_id}: {names}")
    if state.suggestions:
        click.echo("\nSuggested accounts (use --accept-suggestions):")
        for transient_id, account_id in sorted(state.suggestions.items()):
            click.echo(f"  Row {transient_id}: {account_names.get(account_id, account_id)}")


def _account_names(ctx: click.Context) -> dict[int, str]:
    return {acc.id: acc.name for acc in AccountService(ctx.obj["db"]).list_accounts()}


@click.command("preview")
@import_options
@click.pass_context
def preview(ctx, statement_file: str, **opts):
    """Show how a statement file would be imported.

    Rows are marked '+' (new), 'M' (merged into an existing transaction),
    '!' (added although a similar transaction exists), '=' (already in the
    ledger) or '-' (skipped).

    Examples:
        ledgerimport preview statement.csv --account Checking
        ledgerimport preview export.qif --all-accounts --date-format "dd mm yyyy"
    """
    session = open_session(ctx, statement_file, opts)
    print_preview(session.state, _account_names(ctx))


def _create_accounts(ctx: click.Context, session: ImportSession) -> None:
    service = AccountService(ctx.obj["db"])
    state = session.state
    parsed = state.parsed_file
    for row in state.transactions:
        if row.is_matched_existing or row.account_id is not None or row.transient_id in state.conflicts:
            continue
        number = row.extracted_account_number or parsed.account_number
        if not number:
            continue
        result = service.find_or_create_account_by_details(
            number,
            bank_id=row.raw.extracted_bank_id or parsed.bank_id,
            account_type=row.raw.extracted_account_type or parsed.account_type,
        )
        if result.created:
            click.echo(f"Created account {result.account_id} for account number ...{number[-4:]}")
        if result.rule_error:
            click.echo(f"Warning: could not create auto-assign rule: {result.rule_error}", err=True)
        session.assign_account(row.transient_id, result.account_id)


def _prompt_conflicts(session: ImportSession, account_names: dict[int, str]) -> None:
    for transient_id in session.pending_conflicts:
        conflict = session.state.conflicts[transient_id]
        choices = [str(a) for a in sorted(conflict.candidate_account_ids)]
        names = ", ".join(f"{a}={account_names.get(int(a), a)}" for a in choices)
        choice = click.prompt(
            f"Account for row {transient_id} ({names})", type=click.Choice(choices)
        )
        session.resolve_conflict(transient_id, int(choice))


@click.command("import")
@import_options
@click.option("--resolve", "resolutions", multiple=True, metavar="ROW=ACCOUNT", help="Choose the account of a conflicting row")
@click.option("--toggle", "toggles", multiple=True, type=int, metavar="ROW", help="Cycle the selection of a row")
@click.option("--create-accounts", is_flag=True, help="Create accounts for unknown statement account numbers")
@click.option("--accept-suggestions", is_flag=True, help="Use the single suggested account of each row")
@click.option("--dry-run", is_flag=True, help="Show the preview without importing")
@click.pass_context
def import_statement(
    ctx,
    statement_file: str,
    resolutions: tuple[str, ...],
    toggles: tuple[int, ...],
    create_accounts: bool,
    accept_suggestions: bool,
    dry_run: bool,
    **opts,
):
    """Import transactions from a statement file.

    Examples:
        ledgerimport import statement.ofx --account Checking
        ledgerimport import export.csv --all-accounts --resolve 3=Savings
        ledgerimport import bank.csv --account 1 --split --map date=Booked
    """
    session = open_session(ctx, statement_file, opts)
    account_service = AccountService(ctx.obj["db"])

    try:
        if create_accounts and session.state.aggregate:
            _create_accounts(ctx, session)
            session.refresh()
        if accept_suggestions:
            session.accept_suggestions()
        for row, account in _parse_pairs(ctx, resolutions, "resolution"):
            account_id = resolve_account_or_exit(ctx, account_service, account)
            session.resolve_conflict(int(row), account_id)
        for row in toggles:
            session.toggle(row)
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)

    account_names = _account_names(ctx)
    if dry_run:
        print_preview(session.state, account_names)
        click.echo("\nDry run: nothing imported.")
        return

    if session.state.preview_error is not None:
        handle_domain_error(ctx, session.state.preview_error)

    try:
        if session.pending_conflicts and click.get_text_stream("stdin").isatty():
            print_preview(session.state, account_names)
            _prompt_conflicts(session, account_names)
        result = session.commit()
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)

    click.echo("\nImport complete:")
    click.echo(f"  Added: {result.added} transactions")
    click.echo(f"  Updated: {result.updated} transactions")
    click.echo(f"  Skipped: {result.skipped} transactions")
    if not result.changed:
        click.echo("  Ledger unchanged.")


def register_commands(cli):
    """Register preview and import commands with main CLI."""
    cli.add_command(preview)
    cli.add_command(import_statement)
