from __future__ import annotations

import typer

from formpulse.config import Settings

cli = typer.Typer(add_completion=False)


def run_server(host: str | None, port: int | None, log_level: str = "info") -> None:
    import uvicorn

    from formpulse.app import create_app

    settings = Settings()
    resolved_host = host or settings.host
    resolved_port = port if port is not None else settings.port
    uvicorn.run(
        create_app(settings),
        host=resolved_host,
        port=resolved_port,
        log_level=log_level,
    )


@cli.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
    log_level: str = typer.Option("info", help="Log level passed to uvicorn"),
) -> None:
    ctx.obj = {"host": host, "port": port, "log_level": log_level}
    if ctx.invoked_subcommand is None:
        run_server(host, port, log_level)


@cli.command()
def run(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
) -> None:
    base = ctx.obj or {}
    resolved_host = host or base.get("host")
    resolved_port = port if port is not None else base.get("port")
    run_server(resolved_host, resolved_port, base.get("log_level", "info"))


if __name__ == "__main__":
    cli()
