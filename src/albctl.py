#!/usr/bin/env python3
"""
CLI tool for albsync
Queries the status API of a running controller and validates manifests
"""

import json
import os

import click
import requests
import yaml
from tabulate import tabulate

from validation import validate_ingress

API_BASE_URL = os.getenv("ALBSYNC_API_URL", "http://localhost:8080/api/v1")


class AlbSyncCLI:
    """CLI client for the albsync status API"""

    def __init__(self, base_url: str = API_BASE_URL):
        self.base_url = base_url

    def _make_request(self, method: str, endpoint: str, **kwargs):
        """Make HTTP request to the API"""
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.request(method, url, timeout=60, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            click.echo(f"Error: {e}", err=True)
            if getattr(e, "response", None) is not None:
                try:
                    click.echo(f"Detail: {e.response.json()}", err=True)
                except (ValueError, json.JSONDecodeError):
                    click.echo(f"Response: {e.response.text}", err=True)
            return None


@click.group()
@click.option("--api-url", default=API_BASE_URL, help="Base URL of the status API")
@click.pass_context
def cli(ctx, api_url):
    """albsync CLI - inspect load balancers managed for ingresses"""
    ctx.obj = AlbSyncCLI(api_url)


@cli.command()
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.pass_obj
def state(client, output):
    """Show the committed resource set"""
    result = client._make_request("GET", "/state")
    if result is None:
        raise SystemExit(1)

    resources = result.get("resources", [])
    if output == "json":
        click.echo(json.dumps(resources, indent=2))
        return
    if output == "yaml":
        click.echo(yaml.safe_dump(resources, default_flow_style=False))
        return

    headers = ["Namespace", "Name", "Status", "Tainted", "Load Balancer", "Hostname"]
    rows = []
    for resource in resources:
        lb = resource.get("load_balancer") or {}
        rows.append(
            [
                resource["namespace"],
                resource["name"],
                resource["status"],
                "yes" if resource["tainted"] else "",
                lb.get("name", "<none>"),
                ", ".join(resource.get("hostnames", [])),
            ]
        )
    click.echo(f"Cluster: {result.get('cluster_name')}")
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
@click.argument("namespace")
@click.argument("name")
@click.pass_obj
def hostnames(client, namespace, name):
    """Show the hostnames of an ingress's load balancer"""
    result = client._make_request("GET", f"/resources/{namespace}/{name}/hostnames")
    if result is None:
        raise SystemExit(1)

    if not result["hostnames"]:
        click.echo("No hostnames assigned yet")
    for hostname in result["hostnames"]:
        click.echo(hostname)


@cli.command()
@click.pass_obj
def sync(client):
    """Trigger a sync cycle and wait for it to finish"""
    result = client._make_request("POST", "/sync")
    if result is None:
        raise SystemExit(1)

    click.echo(f"Sync {result['status']}, managing {result['managed_resources']}")


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def validate(filename):
    """Validate the ingresses in a YAML manifest"""
    with open(filename, "r") as f:
        documents = [d for d in yaml.safe_load_all(f) if d]

    ingresses = [d for d in documents if d.get("kind") == "Ingress"]
    failed = 0
    for ingress in ingresses:
        metadata = ingress.get("metadata") or {}
        key = f"{metadata.get('namespace', '?')}/{metadata.get('name', '?')}"
        is_valid, error = validate_ingress(ingress)
        if is_valid:
            click.echo(f"✓ {key}")
        else:
            failed += 1
            click.echo(f"✗ {key}: {error}")

    click.echo(f"{len(ingresses) - failed}/{len(ingresses)} ingresses valid")
    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
