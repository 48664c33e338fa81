"""Version information for DevScope."""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)

# Release information
__author__ = "DevScope Team"
__license__ = "MIT"
__description__ = "Inventory of developer runtimes, packages, services and environment"
