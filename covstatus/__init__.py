"""covstatus - settings store for pull-request coverage status reporting.

Holds CI connection credentials, coverage thresholds and the latest coverage
per project, keeping every credential sealed at rest and in memory.
"""

__version__ = "0.1.0"
__author__ = "covstatus Contributors"

from covstatus.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
