import click
import uvicorn

from foodchat import dbutils
from foodchat.config import get_config


@click.group()
def cli():
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address, defaults to FOODCHAT_HOST")
@click.option("--port", type=int, default=None, help="Port, defaults to FOODCHAT_PORT")
@click.option("--reload", is_flag=True, default=False)
def serve(host, port, reload):
    """Run the chat server."""
    config = get_config()
    uvicorn.run("foodchat.app:app", host=host or config.host, port=port or config.port, reload=reload)


@cli.command()
def migrate():
    """Create the chat tables."""
    dbutils.migrate(get_config())
    click.echo("Database is up to date")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
def clear(yes):
    """Drop the chat tables and everything in them."""
    if not yes:
        click.confirm("This deletes all chats. Continue?", abort=True)
    dbutils.clear(get_config())
    click.echo("Database cleared")


if __name__ == "__main__":
    cli()
