"""
Pre-connect profile checks.

Run by whoever is about to start a tunnel, before any network resource is
acquired. The model itself stays lenient so that incomplete profiles can
still be stored and edited.
"""

import string
from urllib.parse import urlparse

from ..bridges import parse_bridge_lines
from ..errors import ValidationError
from ..models.profile import (
    DnsTransport,
    DnsttParams,
    DohParams,
    QuicParams,
    ServerProfile,
    SshAuthType,
    SshParams,
    TorParams,
)


_HEX_DIGITS = set(string.hexdigits)


def is_https_url(url: str) -> bool:
    """Check that url is an absolute https:// URL with a host."""
    parsed = urlparse(url.strip())
    return parsed.scheme == "https" and bool(parsed.hostname)


def validate_profile(profile: ServerProfile) -> None:
    """
    Check that a profile carries what its tunnel type needs.

    Raises:
        ValidationError: Naming the first missing or malformed field
    """
    for group in profile.parameter_groups():
        match group:
            case QuicParams():
                # Every QUIC parameter has a usable default
                pass
            case DnsttParams():
                _check_dnstt(group)
            case SshParams():
                _check_ssh(group)
            case DohParams():
                if not is_https_url(group.url):
                    raise ValidationError("doh_url", "Must be a valid https:// URL")
            case TorParams():
                try:
                    parse_bridge_lines(group.bridge_lines)
                except ValueError as e:
                    raise ValidationError("tor_bridge_lines", str(e)) from e


def _check_dnstt(params: DnsttParams) -> None:
    key = params.public_key.strip()
    if not key:
        raise ValidationError("dnstt_public_key", "Public key is required for DNSTT")
    if not all(c in _HEX_DIGITS for c in key):
        raise ValidationError("dnstt_public_key", "Public key must be hex-encoded")

    if params.dns_transport == DnsTransport.DOH and not is_https_url(params.doh_url):
        raise ValidationError("doh_url", "DoH transport needs a valid https:// URL")


def _check_ssh(params: SshParams) -> None:
    if not params.host.strip():
        raise ValidationError("ssh_host", "SSH host is required")
    if params.port < 1 or params.port > 65535:
        raise ValidationError("ssh_port", "Port must be between 1 and 65535")

    if params.auth_type == SshAuthType.PASSWORD:
        if not params.password:
            raise ValidationError("ssh_password", "SSH password is required")
    else:
        if not params.private_key.strip():
            raise ValidationError("ssh_private_key", "SSH private key is required")
        if not params.private_key.lstrip().startswith("-----BEGIN"):
            raise ValidationError("ssh_private_key", "Invalid key format (must be PEM)")
