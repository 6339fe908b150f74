"""
Flask CLI commands for tenant store management.

Commands:
- flask provision-tenant: Register an organization and create its store
- flask evict-stores: Evict idle tenant stores of this process
- flask create-super-admin: Create a platform super-admin
"""

import click
import re
from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.exceptions import AppError
from app.models import EventType, SuperAdmin
from app.services import organization_service


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('provision-tenant')
    @click.option('--name', prompt=True, help='Organization display name')
    @click.option('--subdomain', prompt=True, help='Tenant key (lowercase letters, digits, hyphens)')
    @click.option(
        '--service', 'services',
        multiple=True,
        type=click.Choice([t.value for t in EventType]),
        default=[t.value for t in EventType],
        show_default=True,
        help='Enabled service (repeatable)',
    )
    @click.option('--cnpj', default=None, help='Organization CNPJ')
    def provision_tenant(name, subdomain, services, cnpj):
        """Register an organization and create its tenant store."""
        stores = current_app.extensions['tenant_stores']
        try:
            organization = organization_service.register_organization(
                stores, name=name, subdomain=subdomain.strip().lower(), services=services, cnpj=cnpj
            )
        except AppError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\nOrganization provisioned!', fg='green', bold=True))
        click.echo(f'   Subdomain: {organization.subdomain}')
        click.echo(f'   ID: {organization.id}')
        click.echo(f'   Services: {", ".join(organization.services)}')
        click.echo(f'   Store: {stores.store_path(organization.subdomain)}')

    @app.cli.command('evict-stores')
    @click.option('--all', 'release_all', is_flag=True, help='Release every cached store, not only idle ones')
    def evict_stores(release_all):
        """Evict idle tenant stores."""
        stores = current_app.extensions['tenant_stores']
        if release_all:
            count = len(stores.cached_keys())
            stores.release_all()
            click.echo(f'Released {count} store(s).')
            return

        evicted = stores.evict_expired()
        if evicted:
            click.echo(f'Evicted: {", ".join(evicted)}')
        else:
            click.echo('No idle stores to evict.')

    @app.cli.command('create-super-admin')
    @click.option('--name', prompt=True, help='Full name')
    @click.option('--email', prompt=True, help='Super-admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
    def create_super_admin(name, email, password):
        """Create a new platform super-admin."""

        # Validate email format
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            click.echo(click.style('Invalid email. Use format: user@example.com', fg='red'))
            raise SystemExit(1)

        # Validate password length
        if len(password) < 8:
            click.echo(click.style('Password must be at least 8 characters.', fg='red'))
            raise SystemExit(1)

        stores = current_app.extensions['tenant_stores']
        with stores.resolve_registry().session() as session:
            admin = SuperAdmin(name=name, email=email)
            admin.set_password(password)
            session.add(admin)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                click.echo(click.style(f'A super-admin with email {email} already exists', fg='red'))
                raise SystemExit(1)

            click.echo(click.style('\nSuper-admin created!', fg='green', bold=True))
            click.echo(f'   Email: {email}')
            click.echo(f'   ID: {admin.id}')
