"""
Endpoint Resolution
===================

Classifies the configured endpoint once, at store-open time, into a closed
set of URL styles plus the region the signer must use:

| Endpoint                          | Style           | Signing region     |
|-----------------------------------|-----------------|--------------------|
| none                              | VIRTUAL_HOSTED  | configured region  |
| *storage.googleapis.com*          | PATH_STYLE      | "auto"             |
| s3[.-]<region>.amazonaws.com      | PATH_STYLE      | configured/implied |
| anything else (MinIO, B2, ...)    | PATH_STYLE      | configured region  |

Any endpoint override is addressed path-style on the override host. A
canonical AWS host only supplies the region when none is configured.

Request-building code only ever looks at the resulting SigningContext; no
host-string checks happen past this module.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional
from urllib.parse import urlsplit

from s3ledger.core import constants as C
from s3ledger.core.errors import ConfigurationError
from s3ledger.core.types import Err, Ok, Result

logger = logging.getLogger(__name__)

_AWS_S3_HOST = re.compile(
    r"^s3(?:[.-](?:dualstack\.)?(?P<region>[a-z0-9-]+))?\.amazonaws\.com$"
)

# Legacy global endpoints that do not name a region
_AWS_GLOBAL_ALIASES = {"external-1": "us-east-1"}


class UrlStyle(Enum):
    """How the bucket is addressed in request URLs."""
    VIRTUAL_HOSTED = auto()  # bucket in the hostname (canonical AWS)
    PATH_STYLE = auto()      # bucket as first path segment (custom endpoints)


@dataclass(frozen=True, slots=True)
class SigningContext:
    """
    Immutable per-store addressing and signing parameters.

    Attributes:
        style: URL style for every request of the store.
        signing_region: Region used in the SigV4 credential scope. May be
            the fixed "auto" token for GCS-compatible endpoints.
        region: Region used to build AWS hostnames (virtual-hosted only).
        scheme: URL scheme of requests.
        endpoint_host: Override host (with port), path-style only.
        service: SigV4 service name.
    """
    style: UrlStyle
    signing_region: str
    region: Optional[str] = None
    scheme: str = "https"
    endpoint_host: Optional[str] = None
    service: str = C.S3_SERVICE


def aws_region_from_host(host: str) -> Optional[str]:
    """
    Return the region named by a canonical AWS S3 host.

    Returns "" for the global `s3.amazonaws.com` host and None for hosts
    that are not canonical AWS S3 endpoints.
    """
    match = _AWS_S3_HOST.match(host.lower())
    if match is None:
        return None
    region = match.group("region") or ""
    return _AWS_GLOBAL_ALIASES.get(region, region)


def resolve_signing_context(
    endpoint: Optional[str],
    region: Optional[str],
) -> Result[SigningContext, ConfigurationError]:
    """
    Derive the SigningContext for an endpoint override and region.

    Args:
        endpoint: Endpoint override URL, or None for canonical AWS.
        region: Configured region, may be None.

    Returns:
        Ok(SigningContext): virtual-hosted without an override, path-style
        on the override host otherwise. Err(ConfigurationError) when no
        region is configured and the endpoint does not imply one.
    """
    if endpoint is None:
        if not region:
            return Err(ConfigurationError.missing("s3Region"))
        return Ok(SigningContext(
            style=UrlStyle.VIRTUAL_HOSTED,
            signing_region=region,
            region=region,
        ))

    parts = urlsplit(endpoint)
    host = parts.hostname or ""
    if not parts.scheme or not parts.netloc:
        return Err(ConfigurationError.invalid_setting(
            "s3Endpoint", endpoint, "must be an absolute URL"
        ))

    if not region:
        aws_region = aws_region_from_host(host)
        if aws_region is not None:
            region = aws_region or "us-east-1"

    if C.GCS_HOST_MARKER in host.lower():
        signing_region = C.GCS_SIGNING_REGION
    elif region:
        signing_region = region
    else:
        return Err(ConfigurationError.missing("s3Region"))

    logger.debug(
        "Endpoint %s uses path-style addressing, signing region %s",
        endpoint, signing_region,
    )
    return Ok(SigningContext(
        style=UrlStyle.PATH_STYLE,
        signing_region=signing_region,
        region=region,
        scheme=parts.scheme,
        endpoint_host=_host_with_port(parts.scheme, host, parts.port),
    ))


def _host_with_port(scheme: str, host: str, port: Optional[int]) -> str:
    """Host header value; default ports are omitted."""
    if port is None or (scheme, port) in (("http", 80), ("https", 443)):
        return host
    return f"{host}:{port}"
