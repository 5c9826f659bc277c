# loyalty_wallet/cli.py

"""
Wallet CLI Commands

Click commands for issuing and checking loyalty passes:
- issue / preview cards
- verify a .pkpass file
- create the Google Wallet class
- run the pass server

Available standalone as `loyalty-wallet` and inside a Flask app as
`flask wallet`.
"""

import json

import click
from flask import current_app, has_app_context

from loyalty_wallet.bundle.verify import inspect_archive
from loyalty_wallet.config import WalletConfig
from loyalty_wallet.errors import WalletError
from loyalty_wallet.services.pass_service import PassIssuer, PLATFORMS


def _get_issuer(ctx: click.Context) -> PassIssuer:
    obj = ctx.ensure_object(dict)
    if 'issuer' not in obj:
        if has_app_context() and 'wallet_issuer' in current_app.extensions:
            obj['issuer'] = current_app.extensions['wallet_issuer']
        else:
            obj['issuer'] = PassIssuer.from_config(WalletConfig.from_env())
    return obj['issuer']


@click.group()
@click.pass_context
def wallet(ctx):
    """Loyalty wallet pass commands."""
    ctx.ensure_object(dict)


@wallet.command()
@click.argument('customer_name')
@click.argument('points', type=int)
@click.option('--platform', type=click.Choice(PLATFORMS), default='apple', show_default=True)
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True),
              help='Write the .pkpass here instead of uploading it (Apple only).')
@click.pass_context
def issue(ctx, customer_name, points, platform, output):
    """Issue a card for CUSTOMER_NAME with POINTS."""
    issuer = _get_issuer(ctx)

    if output:
        if platform != 'apple':
            raise click.UsageError('--output is only supported for Apple passes')
        try:
            card = issuer.create_card(customer_name, points)
            archive = issuer.build_apple_pass(card)
        except WalletError as e:
            raise click.ClickException(f"{e.error_code}: {e.message}")
        with open(output, 'wb') as f:
            f.write(archive)
        click.echo(f'Wrote {card.tier} pass {card.card_id} to {output} ({len(archive)} bytes)')
        return

    result = issuer.issue(customer_name, points, platform=platform)
    if not result.success:
        raise click.ClickException(f"{result.error_code}: {result.message}")

    issued = result.data
    click.echo(f'Issued {issued.card.tier} card {issued.card.card_id}')
    click.echo(issued.url)


@wallet.command()
@click.argument('customer_name')
@click.argument('points', type=int)
@click.pass_context
def preview(ctx, customer_name, points):
    """Show the tier and colour a card would get."""
    try:
        data = _get_issuer(ctx).preview(customer_name, points)
    except WalletError as e:
        raise click.ClickException(e.message)
    click.echo(json.dumps(data, indent=2))


@wallet.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--ca', 'ca_file', type=click.Path(exists=True, dir_okay=False),
              help='Trust anchor used to validate the signer chain.')
@click.option('--no-signature', is_flag=True, help='Only check the manifest hashes.')
def verify(path, ca_file, no_signature):
    """Check a .pkpass file's manifest and signature."""
    with open(path, 'rb') as f:
        archive = f.read()
    try:
        report = inspect_archive(archive, ca_file=ca_file, verify_signature=not no_signature)
    except WalletError as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")

    document = report['document']
    click.echo(f"Pass {document['serialNumber']} ({document['passTypeIdentifier']})")
    click.echo(f"Files: {', '.join(report['files'])}")
    if report['signer']:
        click.echo(f"Signed by: {report['signer']}")
    click.echo('OK')


@wallet.command('create-class')
@click.pass_context
def create_class(ctx):
    """Create the Google Wallet class if it does not exist."""
    try:
        outcome = _get_issuer(ctx).ensure_google_class()
    except WalletError as e:
        raise click.ClickException(f"{e.error_code}: {e.message}")
    click.echo(f'Google Wallet class {outcome}')


@wallet.command()
@click.pass_context
def status(ctx):
    """Show which platforms are configured."""
    click.echo(json.dumps(_get_issuer(ctx).get_config_status(), indent=2))


@wallet.command()
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', default=5000, type=int, show_default=True)
@click.option('--debug', is_flag=True)
def serve(host, port, debug):
    """Run the pass server."""
    from loyalty_wallet import create_app

    app = create_app()
    app.run(host=host, port=port, debug=debug)


def register_cli(app):
    """Register wallet commands with the Flask CLI"""
    app.cli.add_command(wallet)
