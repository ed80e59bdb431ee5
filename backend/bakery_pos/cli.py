# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/bakery_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--no-samples]
#   Idempotent bootstrap: creates the schema (sql backend) and seeds default users + walk-in customer.
# - python -m flask system seed-samples
#   Add the sample bakery catalog and customers that are missing.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username alice --password secret --role cashier
#
# Catalog:
# - python -m flask products low-stock

import click
from flask.cli import with_appcontext

from .extensions import get_store
from .services import auth_service
from .services.catalog_service import low_stock_products, LOW_STOCK_THRESHOLD
from .services.seed_service import seed_defaults, seed_samples
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--samples/--no-samples', default=True, help='Also seed the sample bakery catalog')
@with_appcontext
def init_system(samples):
    """
    Initialize the store: schema (sql backend), default users and the
    walk-in customer.

    Default credentials (CHANGE IN PRODUCTION!):
    admin / admin123, cashier / cashier123
    """
    store = get_store()
    click.echo(f"START Initializing store ({store.backend_name} backend)...")
    store.init_schema()

    if seed_defaults(store, include_samples=samples):
        click.echo("PASS Created users: admin, cashier")
        click.echo("PASS Created walk-in customer")
        if samples:
            click.echo("PASS Seeded sample catalog")
    else:
        click.echo("WARN  Users already exist, skipping seed")

    click.echo("DONE Store initialized")


@system_group.command('seed-samples')
@with_appcontext
def seed_samples_cli():
    """Add the sample categories, products and customers that are missing."""
    created = seed_samples(get_store())
    click.echo(
        f"PASS Added {created['categories']} categories, "
        f"{created['products']} products, {created['customers']} customers"
    )


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'cashier']), default='cashier', help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """Create a staff account."""
    try:
        user = auth_service.create_user(get_store(), username=username, password=password, role=role)
    except (ConflictError, ValidationError) as e:
        click.echo(f"FAIL {e}")
        raise click.exceptions.Exit(1)
    click.echo(f"PASS Created user: {user['username']} (ID: {user['id']}) with role '{user['role']}'")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List staff accounts."""
    users = auth_service.list_users(get_store())
    if not users:
        click.echo("No users found")
        return
    for user in users:
        click.echo(f"{user['id']:>4}  {user['username']:<20} {user['role']}")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List products at or below the low-stock threshold."""
    products = low_stock_products(get_store())
    if not products:
        click.echo(f"No products at or below {LOW_STOCK_THRESHOLD} units")
        return
    for product in products:
        click.echo(f"{product['sku']:<10} {product['name']:<24} {product['stock']:>5} {product['unit']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
