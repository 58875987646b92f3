"""Driver protocols implemented by database adapters.

The per-cluster connection registry lives in :mod:`sqldal.driver.registry`.
"""

from sqldal.driver.protocols import Driver, DriverConnection, DriverError, DriverStatement

__all__ = ("Driver", "DriverConnection", "DriverError", "DriverStatement")
