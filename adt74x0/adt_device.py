"""ADT7410 / ADT7420 register protocol.

Datasheets:
  https://www.analog.com/en/products/adt7410.html
  https://www.analog.com/en/products/adt7420.html
"""
import logging
import time

from .errors import (
    ConfigWriteError,
    IdReadError,
    IdentityMismatchError,
    ResetWriteError,
    SlaveSelectError,
    TempReadError,
    TransportError,
)

logger = logging.getLogger(__name__)

# I2C registers in ADT74x0
T_MSB  = 0x00
T_LSB  = 0x01
STATUS = 0x02
CONFIG = 0x03
IDREG  = 0x0B
RESET  = 0x2F

CONFIG_16BIT_CONTINUOUS = 0x80
ID_MASK  = 0xF8
ID_VALUE = 0xC8  # 0b11001xxx

RESET_SETTLE_DELAY = 0.001  # device needs 200us after reset, give it 1ms
CONVERSION_DELAY   = 1.0    # first 16 bit conversion is ~240ms, allow 1s


def twos_complement16(hi, lo):
    raw = ((hi & 0xFF) << 8) | (lo & 0xFF)
    if raw & (1 << 15):  # sign bit set
        raw -= 1 << 16
    return raw


def decode_temperature(hi, lo):
    """Temperature in Celsius from the T_MSB/T_LSB pair (16 bit, 1/128 C per LSB)."""
    return twos_complement16(hi, lo) / 128.0


def identity_ok(id_byte):
    return (id_byte & ID_MASK) == ID_VALUE


class ADT74x0:
    """Drives the reset/configure/read sequence for one chip at a time.

    The transport must already be open. Nothing is cached per address, so one
    instance serves every address on the bus.
    """

    def __init__(self, transport, sleep=time.sleep, settle_delay=RESET_SETTLE_DELAY):
        self.transport = transport
        self.sleep = sleep
        self.settle_delay = settle_delay

    def _select(self, address):
        try:
            self.transport.select_slave(address)
        except TransportError as e:
            raise SlaveSelectError(address, e) from e

    def initialize(self, address, verify_identity=False):
        """Reset the chip and start 16 bit continuous conversions.

        Raises a DeviceError subclass naming the step that failed.
        """
        self._select(address)

        try:
            self.transport.write_bytes([RESET])
        except TransportError as e:
            raise ResetWriteError(address, e) from e

        self.sleep(self.settle_delay)

        try:
            self.transport.write_bytes([CONFIG, CONFIG_16BIT_CONTINUOUS])
        except TransportError as e:
            raise ConfigWriteError(address, e) from e

        if verify_identity:
            id_byte = self.read_identity(address, select=False)
            if not identity_ok(id_byte):
                raise IdentityMismatchError(
                    address, f"ID 0x{id_byte:02x} is not 0b11001xxx"
                )

    def read_identity(self, address, select=True):
        if select:
            self._select(address)
        try:
            id_byte = self.transport.read_register(IDREG, 1)[0]
        except (TransportError, IndexError) as e:
            raise IdReadError(address, e) from e
        logger.debug("0x%02x has ID 0x%02x", address, id_byte)
        return id_byte

    def read_raw(self, address):
        """Return (hi, lo) from T_MSB/T_LSB in register order."""
        self._select(address)
        try:
            data = self.transport.read_register(T_MSB, 2)
        except TransportError as e:
            raise TempReadError(address, e) from e
        if len(data) != 2:
            raise TempReadError(address, f"expected 2 bytes, got {len(data)}")
        return data[0], data[1]

    def read_temperature(self, address):
        hi, lo = self.read_raw(address)
        return decode_temperature(hi, lo)
