"""FME Connect - FME Flow connection settings validation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fme-connect")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from fmeconnect.app import main
from fmeconnect.flow_client import FmeFlowClient
from fmeconnect.panel import ConnectionPanel

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "ConnectionPanel",
    "FmeFlowClient",
    "main",
]
