"""HTTP routers."""

from pwrmon.api.routes import auth, devices, iot

__all__ = ["auth", "devices", "iot"]
