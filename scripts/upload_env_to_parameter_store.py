#!/usr/bin/env python3
"""
Manage the MoniFly settings in AWS Parameter Store.

Reads the settings from a .env file and writes them under ``/monifly``;
the Supabase anon key and JWT secret are stored as SecureString. Run from
the repository root:

    python -m scripts.upload_env_to_parameter_store upload --env-file .env
    python -m scripts.upload_env_to_parameter_store verify
"""

import sys
from pathlib import Path

import boto3
import click
from botocore.exceptions import ClientError
from dotenv import dotenv_values

from services.parameter_store import (PARAMETER_KEYS, PARAMETER_PREFIX,
                                      REQUIRED_KEYS, SECURE_KEYS, env_name)


def read_settings(env_file: str) -> dict:
    """
    Collect the known settings from a .env file.

    Returns:
        Parameter key (``supabase-url``) to value, empty values dropped
    """
    if not Path(env_file).exists():
        click.secho(f"Error: {env_file} file not found", fg="red", err=True)
        sys.exit(1)

    values = dotenv_values(env_file)
    settings = {key: values.get(env_name(key)) for key in PARAMETER_KEYS}
    return {key: value for key, value in settings.items() if value}


def mask(value: str) -> str:
    return value[:6] + "..." if len(value) > 6 else "***"


@click.group()
@click.option(
    "--prefix", default=PARAMETER_PREFIX, help="Parameter Store prefix", show_default=True
)
@click.pass_context
def cli(ctx, prefix: str):
    """Upload and check the MoniFly API settings in Parameter Store."""
    ctx.obj = {"prefix": prefix.rstrip("/"), "ssm": None}


def ssm_client(ctx):
    if ctx.obj["ssm"] is None:
        ctx.obj["ssm"] = boto3.client("ssm")
    return ctx.obj["ssm"]


@cli.command()
@click.option("--env-file", default=".env", help="Path to .env file", show_default=True)
@click.option("--dry-run", is_flag=True, help="Show what would be uploaded")
@click.pass_context
def upload(ctx, env_file: str, dry_run: bool):
    """Write the settings found in the .env file."""
    prefix = ctx.obj["prefix"]
    settings = read_settings(env_file)

    missing = [env_name(key) for key in REQUIRED_KEYS if key not in settings]
    if missing:
        click.secho(f"Missing required variables: {', '.join(missing)}", fg="red", err=True)
        sys.exit(1)

    failed = 0
    for key, value in settings.items():
        name = f"{prefix}/{key}"
        secure = key in SECURE_KEYS
        if dry_run:
            shown = mask(value) if secure else value
            click.echo(f"  {name} = {shown}{' (secure)' if secure else ''}")
            continue
        try:
            response = ssm_client(ctx).put_parameter(
                Name=name,
                Value=value,
                Type="SecureString" if secure else "String",
                Description=f"MoniFly API setting {env_name(key)}",
                Overwrite=True,
            )
        except ClientError as e:
            failed += 1
            click.secho(f"Failed to upload {name}: {e}", fg="red", err=True)
            continue
        click.secho(f"Uploaded {name} (version {response['Version']})", fg="green")

    if dry_run:
        click.secho("Dry run: nothing was uploaded", fg="blue")
    elif failed:
        sys.exit(1)


@cli.command()
@click.pass_context
def verify(ctx):
    """Check that every required setting exists."""
    prefix = ctx.obj["prefix"]
    missing = 0
    for key in PARAMETER_KEYS:
        name = f"{prefix}/{key}"
        try:
            response = ssm_client(ctx).get_parameter(Name=name, WithDecryption=False)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ParameterNotFound":
                raise click.ClickException(f"Error checking {name}: {e}")
            required = key in REQUIRED_KEYS
            if required:
                missing += 1
            click.secho(
                f"{name} not found{' (required)' if required else ''}",
                fg="red" if required else "yellow",
            )
            continue
        click.secho(
            f"{name} exists (version {response['Parameter']['Version']})", fg="green"
        )

    if missing:
        sys.exit(1)


if __name__ == "__main__":
    cli()
