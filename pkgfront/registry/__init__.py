"""Default delegate: npm registry request handling."""

from pkgfront.registry.engine import RegistryRequestHandler, create_request_handler
from pkgfront.registry.urls import PackageURL, parse_package_url

__all__ = [
    "PackageURL",
    "RegistryRequestHandler",
    "create_request_handler",
    "parse_package_url",
]
