"""Error taxonomy for ADT74x0 scanning.

OpenError is fatal for a whole run. Everything derived from DeviceError is
tied to a single bus address and only ever ends up in that address's status.
The numeric codes match the negative status values the old C tools printed.
"""


class ADTError(Exception):
    code = -99


class OpenError(ADTError):
    """The bus itself could not be opened."""

    code = -100

    def __init__(self, bus_id, reason):
        self.bus_id = bus_id
        self.reason = reason
        super().__init__(f"Unable to open {bus_id}: {reason}")


class TransportError(ADTError):
    """A single bus operation failed (no ACK, arbitration lost, EIO...)."""

    code = -98


class DeviceError(ADTError):
    def __init__(self, address, reason=""):
        self.address = address
        self.reason = str(reason)
        super().__init__(f"0x{address:02x}: {self.reason}")


class SlaveSelectError(DeviceError):
    code = -1


class ResetWriteError(DeviceError):
    code = -2


class IdReadError(DeviceError):
    code = -3


class IdentityMismatchError(DeviceError):
    code = -4


class ConfigWriteError(DeviceError):
    code = -5


class TempReadError(DeviceError):
    code = -6
