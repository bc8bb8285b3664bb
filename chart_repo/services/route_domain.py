"""
Discover the externally visible host name of the repository.

On OpenShift the route domain is published in the status of the default
IngressController; the repository is reachable under that domain.
"""
from __future__ import annotations

import asyncio
import logging
import os
import ssl
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from chart_repo.core.errors import HostDiscoveryError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
TOKEN_FILE = "token"
CA_FILE = "ca.crt"

INGRESS_CONTROLLER_PATH = (
    "/apis/operator.openshift.io/v1/namespaces/openshift-ingress-operator"
    "/ingresscontrollers/default"
)

REQUEST_TIMEOUT_SECONDS = 10.0


def _in_cluster_api_url() -> str:
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT")
    if not host or not port:
        raise HostDiscoveryError(
            "unable to load in-cluster configuration, "
            "KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT must be defined"
        )
    if ":" in host:
        host = f"[{host}]"
    return f"https://{host}:{port}"


async def _read_token(service_account_dir: Path) -> str:
    try:
        async with aiofiles.open(service_account_dir / TOKEN_FILE, "r", encoding="utf-8") as f:
            token = (await f.read()).strip()
    except OSError as e:
        raise HostDiscoveryError(f"cannot read service account token: {e}") from e
    if not token:
        raise HostDiscoveryError("service account token is empty")
    return token


def extract_route_domain(ingress_controller: object) -> str:
    """
    Pull status.domain out of an IngressController object.
    """
    status = ingress_controller.get("status") if isinstance(ingress_controller, dict) else None
    if not isinstance(status, dict):
        raise HostDiscoveryError("unexpected status of default ingresscontroller")

    domain = status.get("domain")
    if not isinstance(domain, str) or not domain:
        raise HostDiscoveryError("domain doesn't exist in the status of default ingresscontroller")
    return domain


async def discover_route_domain(
    api_url: Optional[str] = None,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Query the cluster API for the default IngressController and return its domain.

    api_url defaults to the in-cluster API server. transport is only passed
    in by tests.
    """
    api_url = api_url or _in_cluster_api_url()
    token = await _read_token(service_account_dir)

    verify: object = True
    ca_path = service_account_dir / CA_FILE
    if transport is None and ca_path.is_file():
        try:
            verify = ssl.create_default_context(cafile=str(ca_path))
        except (OSError, ssl.SSLError) as e:
            raise HostDiscoveryError(f"cannot load cluster CA bundle: {e}") from e

    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
    }

    try:
        async with httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            verify=verify,
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        ) as client:
            response = await client.get(INGRESS_CONTROLLER_PATH)
            response.raise_for_status()
            body = response.json()
    except httpx.HTTPError as e:
        raise HostDiscoveryError(f"failed to get default ingresscontroller: {e}") from e
    except ValueError as e:
        raise HostDiscoveryError(f"malformed ingresscontroller response: {e}") from e

    domain = extract_route_domain(body)
    logger.info("Discovered route domain %s", domain)
    return domain


def resolve_route_domain() -> str:
    """
    Blocking wrapper used once at startup, before the server loop exists.
    """
    return asyncio.run(discover_route_domain())
