"""Two pass scan of an I2C bus for ADT74x0 sensors.

Pass 1 resets and configures every candidate address, then the whole bus
waits once for the first conversion, then pass 2 reads every chip that
initialized. Failures on one address never stop the others.
"""
import enum
import logging
import time

from .adt_device import ADT74x0, CONVERSION_DELAY, RESET_SETTLE_DELAY
from .bus_transport import I2C_ADDRS, open_transport
from .errors import DeviceError

logger = logging.getLogger(__name__)

NARROW_RANGE = (0x48, 0x4B)  # ADT74x0 strap addresses
FULL_RANGE = (0x00, I2C_ADDRS - 1)


class DeviceStatus(enum.Enum):
    UNPROBED = "unprobed"
    CANDIDATE = "candidate"
    INITIALIZED = "initialized"
    INIT_FAILED = "init_failed"
    READ_OK = "read_ok"
    READ_FAILED = "read_failed"


TRANSITIONS = {
    DeviceStatus.UNPROBED: {DeviceStatus.CANDIDATE},
    DeviceStatus.CANDIDATE: {DeviceStatus.INITIALIZED, DeviceStatus.INIT_FAILED},
    DeviceStatus.INITIALIZED: {DeviceStatus.READ_OK, DeviceStatus.READ_FAILED},
    DeviceStatus.INIT_FAILED: set(),
    DeviceStatus.READ_OK: set(),
    DeviceStatus.READ_FAILED: set(),
}

FAILED = (DeviceStatus.INIT_FAILED, DeviceStatus.READ_FAILED)


class AddressResult:
    def __init__(self, address):
        self.address = address
        self.status = DeviceStatus.UNPROBED
        self.temperature = None
        self.error = None

    def advance(self, status, temperature=None, error=None):
        if status not in TRANSITIONS[self.status]:
            raise ValueError(
                f"0x{self.address:02x}: illegal transition "
                f"{self.status.value} -> {status.value}"
            )
        logger.debug("0x%02x %s -> %s", self.address, self.status.value, status.value)
        self.status = status
        self.temperature = temperature
        self.error = error

    @property
    def probed(self):
        return self.status is not DeviceStatus.UNPROBED

    def __repr__(self):
        return f"AddressResult(0x{self.address:02x}, {self.status.value}, {self.temperature})"


class ScanResult:
    """Status of all 128 addresses after one scan. Owned by the caller."""

    def __init__(self, bus=None):
        self.bus = bus
        self.results = [AddressResult(addr) for addr in range(I2C_ADDRS)]

    def __getitem__(self, address):
        return self.results[address]

    def __iter__(self):
        return (r for r in self.results if r.probed)

    def __len__(self):
        return len(self.results)

    def status(self, address):
        return self.results[address].status

    def temperature(self, address):
        return self.results[address].temperature

    def error(self, address):
        return self.results[address].error

    def readings(self):
        return {r.address: r.temperature for r in self.results
                if r.status is DeviceStatus.READ_OK}

    def failures(self):
        return {r.address: r.error for r in self.results if r.status in FAILED}


def check_range(first, last):
    if not 0 <= first <= last < I2C_ADDRS:
        raise ValueError(f"bad address range 0x{first:02x}-0x{last:02x}")
    return first, last


class BusScanner:
    def __init__(self, transport, first=NARROW_RANGE[0], last=NARROW_RANGE[1],
                 verify_identity=False, sleep=time.sleep,
                 settle_delay=RESET_SETTLE_DELAY, conversion_delay=CONVERSION_DELAY):
        self.first, self.last = check_range(first, last)
        self.verify_identity = verify_identity
        self.sleep = sleep
        self.conversion_delay = conversion_delay
        self.device = ADT74x0(transport, sleep=sleep, settle_delay=settle_delay)

    def scan(self, bus=None):
        result = ScanResult(bus)
        for addr in range(self.first, self.last + 1):
            result[addr].advance(DeviceStatus.CANDIDATE)

        # Initialize chips & start conversions
        for entry in result:
            try:
                self.device.initialize(entry.address, self.verify_identity)
            except DeviceError as e:
                logger.warning("init 0x%02x failed: %s", entry.address, e)
                entry.advance(DeviceStatus.INIT_FAILED, error=e)
            else:
                entry.advance(DeviceStatus.INITIALIZED)

        # one wait covers every chip on the bus
        self.sleep(self.conversion_delay)

        for entry in result:
            if entry.status is not DeviceStatus.INITIALIZED:
                continue
            try:
                temp = self.device.read_temperature(entry.address)
            except DeviceError as e:
                logger.warning("read 0x%02x failed: %s", entry.address, e)
                entry.advance(DeviceStatus.READ_FAILED, error=e)
            else:
                entry.advance(DeviceStatus.READ_OK, temperature=temp)

        return result


def run_scan(params, sleep=time.sleep, opener=open_transport):
    """Open the bus, scan it once and close it again.

    OpenError propagates before any address is touched.
    """
    with opener(params.BUS, params.BACKEND) as transport:
        scanner = BusScanner(
            transport,
            first=params.ADDR_FIRST,
            last=params.ADDR_LAST,
            verify_identity=params.VERIFY_ID,
            sleep=sleep,
            settle_delay=params.RESET_SETTLE_DELAY_S,
            conversion_delay=params.CONVERSION_DELAY_S,
        )
        return scanner.scan(bus=params.BUS)
