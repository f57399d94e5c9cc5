"""Org discovery and access tokens through the Salesforce CLI (``sf``)."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from subprocess import CompletedProcess
from typing import Any, Final

from .exceptions import CredentialError
from .models import Connection

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_SF_CLI_ENV_VAR: Final[str] = "SF_CLI_PATH"
_DEFAULT_SF_CLI: Final[str] = "sf"


def _sf_executable() -> str:
    return os.environ.get(_SF_CLI_ENV_VAR) or _DEFAULT_SF_CLI


def run_sf(args: list[str]) -> dict[str, Any]:
    """Run an ``sf`` command with ``--json`` and return its ``result`` object.

    Raises:
        CredentialError: If the CLI is missing, fails, or reports an error status
    """
    command = [_sf_executable(), *args, "--json"]
    try:
        completed: CompletedProcess[str] = subprocess.run(  # noqa: S603
            command, capture_output=True, text=True, check=True
        )
        stdout = completed.stdout
    except FileNotFoundError as e:
        msg = f"Salesforce CLI not found ('{command[0]}'). Install it or set {_SF_CLI_ENV_VAR}."
        raise CredentialError(msg) from e
    except subprocess.CalledProcessError as e:
        # sf reports failures as JSON on stdout with a non-zero exit code
        stdout = e.stdout or ""
        if not stdout.strip():
            msg = (
                f"Salesforce CLI command failed: {' '.join(args)}\n"
                f"Error: {(e.stderr or '').strip()}\n"
                f"Return code: {e.returncode}"
            )
            raise CredentialError(msg) from e

    try:
        payload: dict[str, Any] = json.loads(stdout)
    except ValueError as e:
        msg = f"Unexpected output from Salesforce CLI command: {' '.join(args)}"
        raise CredentialError(msg) from e

    if payload.get("status") != 0:
        msg = f"Salesforce CLI command failed: {' '.join(args)}: {payload.get('message', 'unknown error')}"
        raise CredentialError(msg)
    return payload.get("result") or {}


def resolve_connection(alias: str) -> Connection:
    """Get a connection (instance URL + access token) for an authenticated org.

    Raises:
        CredentialError: If no valid, non-expired token exists for the org
    """
    result = run_sf(["org", "display", "--target-org", alias])

    connected_status = result.get("connectedStatus")
    if connected_status and connected_status != "Connected":
        msg = f"Org '{alias}' is not connected ({connected_status}). Re-authenticate it with 'sf org login web'."
        raise CredentialError(msg)

    access_token = result.get("accessToken")
    instance_url = result.get("instanceUrl")
    if not access_token or not instance_url:
        msg = f"No access token available for org '{alias}'"
        raise CredentialError(msg)

    logger.debug(f"Resolved connection for {alias}: {instance_url}")
    return Connection(instance_url=instance_url, access_token=access_token, alias=alias)


def list_available_systems() -> list[str]:
    """Return the aliases (or usernames) of all orgs authenticated with the CLI."""
    result = run_sf(["org", "list"])
    names: list[str] = []
    for key in ("nonScratchOrgs", "scratchOrgs"):
        for org in result.get(key) or []:
            name = org.get("alias") or org.get("username")
            if name and name not in names:
                names.append(name)
    return names
