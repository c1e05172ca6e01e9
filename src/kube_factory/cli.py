"""Command line entry point: resolve and check a Kubernetes master."""

from __future__ import annotations

import logging
import sys

import structlog
import typer

from kube_factory.config import resolve_http_kubernetes_master
from kube_factory.errors import ConnectivityError
from kube_factory.factory import KubernetesFactory


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for console output on a TTY and JSON otherwise, on stderr."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


app = typer.Typer(help="Resolve and verify the Kubernetes master used by kube-factory clients.")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
) -> None:
    configure_logging(log_level)


@app.command()
def master(
    writeable: bool = typer.Option(False, "--writeable", help="Resolve the read-write service endpoint."),
) -> None:
    """Print the resolved master URL without contacting it."""
    typer.echo(resolve_http_kubernetes_master(writeable))


@app.command()
def check(
    address: str | None = typer.Argument(None, help="Master URL; resolved from the environment when omitted."),
    writeable: bool = typer.Option(False, "--writeable", help="Resolve the read-write service endpoint."),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Probe the master before reporting it."),
) -> None:
    """Build a factory for the master and print the address and host it settled on."""
    try:
        factory = KubernetesFactory(address, writeable=writeable, verify_address=verify)
    except ConnectivityError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"address: {factory.address}")
    typer.echo(f"host: {factory.get_kubernetes_master()}")


if __name__ == "__main__":
    app()
