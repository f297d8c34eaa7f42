"""I2C bus access for the scanner.

Two backends sit behind the same small interface:

* ``SMBusTransport`` ("smbus") talks SMBus through the kernel i2c-dev
  driver. Word reads come back LSB first, so the adapter swaps them back.
* ``RdwrTransport`` ("rdwr") builds raw combined transactions with
  ``i2c_rdwr`` (write register pointer, repeated start, read). Bytes arrive
  in wire order, MSB first.

Every register read returns bytes in physical register order, so callers
never care which backend they got.
"""
import fcntl
import logging

from smbus2 import SMBus, i2c_msg

from .errors import OpenError, TransportError

logger = logging.getLogger(__name__)

I2C_SLAVE = 0x0703  # from linux/i2c-dev.h
I2C_ADDRS = 128


def parse_bus_id(bus_id):
    """Accept 1, "1" or "/dev/i2c-1"."""
    if isinstance(bus_id, int):
        return bus_id
    bus_id = str(bus_id).strip()
    if bus_id.isdigit():
        return int(bus_id)
    return bus_id


def bus_name(bus_id):
    bus_id = parse_bus_id(bus_id)
    if isinstance(bus_id, int):
        return f"/dev/i2c-{bus_id}"
    return bus_id


class BusTransport:
    """Base class for a bus handle owned by one scan."""

    name = "base"
    reliable_register_reads = False

    def __init__(self, bus):
        self.bus = bus
        self.address = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        if self.bus is None:
            return
        try:
            self.bus.close()
        finally:
            self.bus = None

    def _require_address(self):
        if self.address is None:
            raise TransportError("no slave address selected")
        return self.address

    def select_slave(self, address):
        raise NotImplementedError

    def write_bytes(self, data):
        raise NotImplementedError

    def read_register(self, register, count):
        raise NotImplementedError


class SMBusTransport(BusTransport):
    name = "smbus"
    # IDREG reads misbehave on some Raspberry Pi controllers
    reliable_register_reads = False

    def select_slave(self, address):
        try:
            fcntl.ioctl(self.bus.fd, I2C_SLAVE, address)
        except OSError as e:
            self.address = None
            raise TransportError(f"I2C_SLAVE 0x{address:02x} failed: {e}") from e
        # smbus2 caches the last address in SMBus.address and only repeats the
        # ioctl when it changes. Our raw ioctl bypasses that cache, so update
        # it or a later call could skip the ioctl and hit the previous chip.
        self.bus.address = address
        self.address = address

    def write_bytes(self, data):
        addr = self._require_address()
        data = list(data)
        try:
            if len(data) == 1:
                self.bus.write_byte(addr, data[0])
            elif len(data) == 2:
                self.bus.write_byte_data(addr, data[0], data[1])
            elif len(data) > 2:
                self.bus.write_i2c_block_data(addr, data[0], data[1:])
            else:
                raise ValueError("nothing to write")
        except OSError as e:
            raise TransportError(f"write to 0x{addr:02x} failed: {e}") from e

    def read_register(self, register, count):
        addr = self._require_address()
        try:
            if count == 1:
                return bytes([self.bus.read_byte_data(addr, register)])
            if count == 2:
                word = self.bus.read_word_data(addr, register)
                # SMBus words are little endian, the register pair is MSB first
                return bytes([word & 0xFF, (word >> 8) & 0xFF])
            return bytes(self.bus.read_i2c_block_data(addr, register, count))
        except OSError as e:
            raise TransportError(
                f"read of register 0x{register:02x} on 0x{addr:02x} failed: {e}"
            ) from e


class RdwrTransport(BusTransport):
    name = "rdwr"
    reliable_register_reads = True

    def select_slave(self, address):
        if not 0 <= address < I2C_ADDRS:
            raise TransportError(f"address 0x{address:02x} out of range")
        self.address = address

    def write_bytes(self, data):
        addr = self._require_address()
        data = list(data)
        if not data:
            raise ValueError("nothing to write")
        try:
            self.bus.i2c_rdwr(i2c_msg.write(addr, data))
        except OSError as e:
            raise TransportError(f"write to 0x{addr:02x} failed: {e}") from e

    def read_register(self, register, count):
        addr = self._require_address()
        write = i2c_msg.write(addr, [register])
        read = i2c_msg.read(addr, count)
        try:
            self.bus.i2c_rdwr(write, read)
        except OSError as e:
            raise TransportError(
                f"read of register 0x{register:02x} on 0x{addr:02x} failed: {e}"
            ) from e
        return bytes(read)


BACKENDS = {
    SMBusTransport.name: SMBusTransport,
    RdwrTransport.name: RdwrTransport,
}


def open_transport(bus_id, backend="smbus"):
    """Open the bus and wrap it in the requested backend.

    Raises OpenError if the backend is unknown or the device node can't be
    opened. Nothing is probed on the bus here.
    """
    try:
        cls = BACKENDS[backend]
    except KeyError:
        raise OpenError(bus_name(bus_id), f"unknown backend {backend!r}") from None

    try:
        bus = SMBus(parse_bus_id(bus_id))
    except OSError as e:
        logger.error("Unable to open %s: %s", bus_name(bus_id), e)
        raise OpenError(bus_name(bus_id), e) from e

    logger.debug("Opened %s with %s backend", bus_name(bus_id), cls.name)
    return cls(bus)
