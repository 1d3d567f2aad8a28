"""
Flask CLI commands for quotation maintenance.

Commands:
- flask init-db: Create the database tables
- flask resync-pricing: Re-price a quotation's catalog lines from the live catalog
- flask show-structure: Print a quotation's section/category/item hierarchy
"""

import click
from studio_quotes.database import db_session, create_all
from studio_quotes.exceptions import QuotationError
from studio_quotes.services.snapshot_service import sync_quotation_pricing
from studio_quotes.services.structure_service import (
    ORDER_CATALOG, ORDER_INCREMENTAL, ORDER_INSERTION, build_hierarchy, items_from_quotation
)
from studio_quotes.services.quotation_service import get_quotation


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table of the quotation engine."""
        create_all()
        click.echo(click.style('✅ Tablas creadas.', fg='green'))

    @app.cli.command('resync-pricing')
    @click.argument('quotation_id', type=int)
    @click.option('--tenant-id', type=int, required=True, help='Tenant owning the quotation')
    @click.option('--recompute-total', is_flag=True, default=False, help='Set the price to the sum of subtotals')
    def resync_pricing(quotation_id, tenant_id, recompute_total):
        """Re-price the catalog lines of a quotation."""
        try:
            summary = sync_quotation_pricing(db_session, quotation_id, tenant_id, recompute_total)
        except QuotationError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(f'✅ Cotización {quotation_id} sincronizada', fg='green', bold=True))
        click.echo(f'   Líneas sincronizadas: {summary["synced"]}')
        click.echo(f'   Líneas omitidas: {summary["skipped"]}')

    @app.cli.command('show-structure')
    @click.argument('quotation_id', type=int)
    @click.option('--tenant-id', type=int, required=True, help='Tenant owning the quotation')
    @click.option(
        '--order-by',
        type=click.Choice([ORDER_INCREMENTAL, ORDER_CATALOG, ORDER_INSERTION]),
        default=ORDER_INCREMENTAL,
        show_default=True
    )
    def show_structure(quotation_id, tenant_id, order_by):
        """Print the hierarchy a quotation is displayed with."""
        try:
            quotation = get_quotation(db_session, tenant_id, quotation_id)
        except QuotationError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        structure = build_hierarchy(items_from_quotation(quotation), order_by=order_by)
        click.echo(click.style(f'{quotation.name} ({quotation.status.value})', bold=True))
        for section in structure['sections']:
            click.echo(click.style(section['name'], fg='cyan'))
            for category in section['categories']:
                click.echo(f'  {category["name"]}')
                for item in category['items']:
                    click.echo(f'    - {item["name"]} x{item["quantity"]}  {item["subtotal"]}')
        click.echo(click.style(f'Total: {structure["total"]}', fg='green'))
