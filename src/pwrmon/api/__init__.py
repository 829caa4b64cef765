"""HTTP API for devices and dashboard users."""

from pwrmon.api.app import create_app

__all__ = ["create_app"]
