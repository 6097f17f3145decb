"""Installs launch-ready game instances: base client, modloader libraries,
content-addressed assets and a bundled graphics shim.
"""
from .errors import (
    InstallError, IntegrityError, IoError, ManifestError, NetworkError,
    RetryExhausted, UnsupportedModloader,
)
from .install import install_instance
from .launch import LaunchSink, launch_instance
from .models import Account, InstanceDescriptor

__version__ = '0.1.0'
