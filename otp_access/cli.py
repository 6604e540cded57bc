from datetime import timedelta

import click

from .services.retention import purge_expired


def register_cli(app):
    @app.cli.command('purge-expired')
    @click.option('--hours', type=int, default=None, help='Retention horizon in hours (default RETENTION_HOURS).')
    def purge_expired_command(hours):
        """Delete codes and sessions that expired before the retention horizon."""
        hours = hours if hours is not None else app.config['RETENTION_HOURS']
        codes, sessions = purge_expired(timedelta(hours=hours))
        click.echo(f'purged {codes} codes, {sessions} sessions older than {hours}h')
