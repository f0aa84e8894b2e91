"""CLI error handling helpers."""

import click

from dealerbooks.domain.errors import DomainError, ImportFailedError, UploadValidationError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def handle_import_error(ctx: click.Context, error: DomainError) -> None:
    """Render a rejected or aborted import, including collected row errors."""
    if isinstance(error, UploadValidationError):
        for field_name, messages in error.errors.items():
            for message in messages:
                click.echo(f"Error ({field_name}): {message}", err=True)
    elif isinstance(error, ImportFailedError):
        click.echo(f"Import failed: {error}", err=True)
        for row_error in error.errors:
            click.echo(f"    {row_error}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
