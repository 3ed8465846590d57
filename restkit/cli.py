"""Command line entry point: send one request through RestClient.

Usage:
    # Plain GET
    restkit request GET https://api.example.com/users/1

    # JSON body with headers
    restkit request POST https://api.example.com/users \
        --json-data '{"name": "ada"}' -H "Authorization: Bearer abc"

    # URL-encoded form
    restkit request POST https://auth.example.com/token --form grant_type=client_credentials

    # Verbose logging, three attempts on connection errors
    restkit request GET https://api.example.com/health --retries 3 -v
"""

import json
import logging
import sys
from typing import Any

import click

from .config import ClientConfig, LoggerSettings, LogLevel
from .utils.http_client import NO_BODY, HTTPError, RestClient, parse_rest_error
from .utils.logger import setup_logging


def _parse_headers(values: tuple[str, ...]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected 'Name: value', got: {value}", param_hint="--header")
        headers[name.strip()] = header_value.strip()
    return headers


def _parse_form(values: tuple[str, ...]) -> dict[str, list[str]]:
    form: dict[str, list[str]] = {}
    for value in values:
        key, sep, form_value = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected 'key=value', got: {value}", param_hint="--form")
        form.setdefault(key, []).append(form_value)
    return form


@click.group()
def main() -> None:
    """Helpers for REST clients and services."""


@main.command()
@click.argument("method")
@click.argument("url")
@click.option("--data", "-d", default=None, help="Request body, sent verbatim")
@click.option("--json-data", default=None, help="JSON document sent as the request body")
@click.option("--header", "-H", "headers", multiple=True, help="Request header as 'Name: value'")
@click.option("--form", "-F", "form", multiple=True, help="Form field as key=value (POST only)")
@click.option("--timeout", "-t", default=None, type=click.FloatRange(min=0, min_open=True), help="Request timeout in seconds")
@click.option("--retries", default=1, type=click.IntRange(min=1), help="Attempts on connection errors (default: 1)")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
def request(
    method: str,
    url: str,
    data: str | None,
    json_data: str | None,
    headers: tuple[str, ...],
    form: tuple[str, ...],
    timeout: float | None,
    retries: int,
    verbose: bool,
) -> None:
    """Send METHOD to URL and print the response."""
    body_options = [value for value in (data, json_data) if value is not None]
    if form:
        body_options.append(form)
    if len(body_options) > 1:
        raise click.UsageError("--data, --json-data and --form are mutually exclusive")

    logger = setup_logging(
        LoggerSettings(
            level=LogLevel.DEBUG if verbose else LogLevel.WARNING,
            output_paths=["stderr"],
            error_output_paths=[],
            json_logs=False,
        )
    )
    if verbose:
        logging.basicConfig(format="%(message)s", stream=sys.stderr, level=logging.DEBUG)

    body: Any = NO_BODY
    if data is not None:
        body = data
    if json_data is not None:
        try:
            body = json.loads(json_data)
        except ValueError as e:
            raise click.BadParameter(f"invalid JSON: {e}", param_hint="--json-data") from e

    config = ClientConfig(timeout=timeout, max_attempts=retries)
    request_headers = _parse_headers(headers)

    with RestClient.from_config(config) as client:
        try:
            if form:
                if method.upper() != "POST":
                    raise click.UsageError("--form can only be used with POST")
                response = client.post_form(url, _parse_form(form), request_headers)
            else:
                response = client.request(method, url, body, request_headers)
        except HTTPError as e:
            logger.error("request_failed", e, method=method.upper(), url=url)
            raise click.ClickException(str(e)) from e

    logger.debug("request_completed", status_code=response.status_code, url=url)
    click.echo(f"{response.status_code} {response.reason}")
    if response.text:
        click.echo(response.text)

    rest_error = parse_rest_error(response)
    if rest_error is not None:
        click.echo(f"Error: {rest_error}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
