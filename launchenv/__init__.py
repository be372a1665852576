"""launchenv: propagate environment variables to session services.

Sends an environment snapshot to the services that launch applications in a
desktop session, so that programs started afterwards inherit it:

  - KLauncher and plasma-session (one call per variable)
  - the D-Bus activation environment (one call with the whole mapping)
  - the systemd user manager (one call with ``NAME=VALUE`` strings)

Delivery is best effort; the update always finishes.
"""

__version__ = "0.2.0"

from launchenv.core.job import UpdateLaunchEnvironmentJob, update_launch_environment
from launchenv.core.snapshot import EnvironmentSnapshot
from launchenv.core.validator import is_strictly_transmissible_value, is_valid_identifier

__all__ = [
    "EnvironmentSnapshot",
    "UpdateLaunchEnvironmentJob",
    "is_strictly_transmissible_value",
    "is_valid_identifier",
    "update_launch_environment",
    "__version__",
]
