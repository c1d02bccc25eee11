"""Main CLI entry point."""

import logging

import click
from ledgerimport.database.factories import create_sqlite_database

# Import and register all commands at module level
from ledgerimport.cli.commands import account, category, import_cmd


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERIMPORT_DB_PATH environment variable)",
    envvar="LEDGERIMPORT_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log import decisions to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """ledgerimport - Import bank statements into a ledger.

    Reads CSV/TSV, QIF, OFX/QFX and CAMT files, matches them against the
    transactions already in the ledger and imports the rest.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
account.register_commands(cli)
category.register_commands(cli)
import_cmd.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
