import unittest
from types import SimpleNamespace

from adt74x0.adt_device import CONVERSION_DELAY, IDREG, T_MSB
from adt74x0.errors import (
    IdentityMismatchError, OpenError, SlaveSelectError, TempReadError, TransportError,
)
from adt74x0.scanner import (
    FULL_RANGE, NARROW_RANGE, AddressResult, BusScanner, DeviceStatus, run_scan,
)

SETTLE = 0.001
CONVERT = 0.5

# ================
#  MOCK CLASSES
# ================
class ChipMock:
    def __init__(self, temp=(0x0C, 0x80), id_byte=0xC8, fail_on=()):
        self.temp = bytes(temp)
        self.id_byte = id_byte
        self.fail_on = set(fail_on)


class BusMock:
    """A shared bus with chips at some addresses; absent addresses NACK."""
    def __init__(self, chips=None):
        self.chips = chips or {}
        self.address = None
        self.calls = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.closed = True

    def _chip(self, op):
        chip = self.chips.get(self.address)
        if chip is None or op in chip.fail_on:
            raise TransportError(f"no ACK from 0x{self.address:02x}")
        return chip

    def select_slave(self, address):
        self.calls.append((address, "select"))
        self.address = address
        chip = self.chips.get(address)
        if chip is not None and "select" in chip.fail_on:
            raise TransportError("EBUSY")

    def write_bytes(self, data):
        self.calls.append((self.address, "write", data[0]))
        self._chip(("write", data[0]))

    def read_register(self, register, count):
        self.calls.append((self.address, "read", register))
        chip = self._chip(("read", register))
        if register == IDREG:
            return bytes([chip.id_byte])
        return chip.temp[:count]


class FakeSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


def make_scanner(bus, sleep, **kwargs):
    return BusScanner(bus, sleep=sleep, settle_delay=SETTLE, conversion_delay=CONVERT, **kwargs)


# ===================
#  UNIT TEST CLASSES
# ===================
class TestBusScanner(unittest.TestCase):

    def setUp(self):
        self.sleep = FakeSleep()

    def test_narrow_range_default(self):
        self.assertEqual(NARROW_RANGE, (0x48, 0x4B))
        self.assertEqual(FULL_RANGE, (0x00, 0x7F))
        self.assertEqual(CONVERSION_DELAY, 1.0)

    def test_reads_present_chips(self):
        bus = BusMock({0x48: ChipMock(temp=(0x19, 0x00)), 0x4A: ChipMock(temp=(0xFF, 0x80))})
        result = make_scanner(bus, self.sleep).scan()

        self.assertEqual(result.status(0x48), DeviceStatus.READ_OK)
        self.assertEqual(result.temperature(0x48), 50.0)
        self.assertEqual(result.temperature(0x4A), -1.0)
        self.assertEqual(result.status(0x49), DeviceStatus.INIT_FAILED)
        self.assertIsInstance(result.error(0x49), Exception)
        self.assertEqual(result.readings(), {0x48: 50.0, 0x4A: -1.0})
        self.assertEqual(sorted(result.failures()), [0x49, 0x4B])

    def test_addresses_outside_range_untouched(self):
        bus = BusMock({0x48: ChipMock(), 0x50: ChipMock()})
        result = make_scanner(bus, self.sleep).scan()

        touched = {call[0] for call in bus.calls}
        self.assertEqual(touched, {0x48, 0x49, 0x4A, 0x4B})
        self.assertEqual(len(result), 128)
        for addr in range(128):
            if not 0x48 <= addr <= 0x4B:
                self.assertEqual(result.status(addr), DeviceStatus.UNPROBED)
                self.assertIsNone(result.temperature(addr))
        self.assertEqual([r.address for r in result], [0x48, 0x49, 0x4A, 0x4B])

    def test_init_failure_never_read(self):
        bus = BusMock({0x48: ChipMock(fail_on={("write", 0x03)}), 0x49: ChipMock()})
        result = make_scanner(bus, self.sleep).scan()

        self.assertEqual(result.status(0x48), DeviceStatus.INIT_FAILED)
        self.assertNotIn((0x48, "read", T_MSB), bus.calls)
        self.assertIn((0x49, "read", T_MSB), bus.calls)

    def test_single_conversion_delay(self):
        chips = {addr: ChipMock() for addr in range(0x08, 0x78)}
        make_scanner(BusMock(chips), self.sleep, first=0x00, last=0x7F).scan()

        self.assertEqual(self.sleep.delays.count(CONVERT), 1)
        self.assertEqual(self.sleep.delays.count(SETTLE), len(chips))

    def test_all_inits_before_any_read(self):
        bus = BusMock({addr: ChipMock() for addr in range(0x48, 0x4C)})
        make_scanner(bus, self.sleep).scan()

        ops = [call[1:] for call in bus.calls if call[1] != "select"]
        first_read = ops.index(("read", T_MSB))
        self.assertEqual(ops[:first_read], [("write", 0x2F), ("write", 0x03)] * 4)
        self.assertEqual(ops[first_read:], [("read", T_MSB)] * 4)

    def test_delay_between_passes(self):
        events = []
        bus = BusMock({0x48: ChipMock()})
        real_read = bus.read_register

        def read_register(register, count):
            events.append("read")
            return real_read(register, count)

        bus.read_register = read_register
        sleep = lambda s: events.append(s)
        make_scanner(bus, sleep).scan()
        self.assertEqual(events, [SETTLE, CONVERT, "read"])

    def test_no_devices(self):
        result = make_scanner(BusMock(), self.sleep).scan()

        probed = list(result)
        self.assertEqual(len(probed), 4)
        self.assertTrue(all(r.status is DeviceStatus.INIT_FAILED for r in probed))
        self.assertEqual(result.readings(), {})
        self.assertEqual(self.sleep.delays.count(CONVERT), 1)

    def test_read_failure_recorded(self):
        bus = BusMock({0x4B: ChipMock(fail_on={("read", T_MSB)})})
        result = make_scanner(bus, self.sleep).scan()

        self.assertEqual(result.status(0x4B), DeviceStatus.READ_FAILED)
        self.assertIsInstance(result.error(0x4B), TempReadError)
        self.assertIsNone(result.temperature(0x4B))

    def test_select_failure_recorded(self):
        bus = BusMock({0x48: ChipMock(fail_on={"select"})})
        result = make_scanner(bus, self.sleep).scan()
        self.assertIsInstance(result.error(0x48), SlaveSelectError)

    def test_identity_verification(self):
        bus = BusMock({0x48: ChipMock(id_byte=0xC8), 0x49: ChipMock(id_byte=0xC0)})
        result = make_scanner(bus, self.sleep, verify_identity=True).scan()

        self.assertEqual(result.status(0x48), DeviceStatus.READ_OK)
        self.assertIsInstance(result.error(0x49), IdentityMismatchError)
        self.assertNotIn((0x49, "read", T_MSB), bus.calls)

    def test_non_adt_device_is_init_failed_in_full_range(self):
        bus = BusMock({0x48: ChipMock(), 0x68: ChipMock(id_byte=0x68)})
        result = make_scanner(bus, self.sleep, first=0x00, last=0x7F, verify_identity=True).scan()
        self.assertEqual(result.status(0x68), DeviceStatus.INIT_FAILED)
        self.assertEqual(result.status(0x48), DeviceStatus.READ_OK)

    def test_bad_range(self):
        with self.assertRaises(ValueError):
            BusScanner(BusMock(), first=0x4B, last=0x48)
        with self.assertRaises(ValueError):
            BusScanner(BusMock(), first=0x00, last=0x80)

    def test_unexpected_errors_propagate(self):
        bus = BusMock({0x48: ChipMock()})

        def broken(data):
            raise RuntimeError("bug")

        bus.write_bytes = broken
        with self.assertRaises(RuntimeError):
            make_scanner(bus, self.sleep).scan()


class TestAddressResult(unittest.TestCase):

    def test_transitions_are_monotonic(self):
        entry = AddressResult(0x48)
        entry.advance(DeviceStatus.CANDIDATE)
        entry.advance(DeviceStatus.INITIALIZED)
        entry.advance(DeviceStatus.READ_OK, temperature=21.5)
        with self.assertRaises(ValueError):
            entry.advance(DeviceStatus.READ_FAILED)

    def test_cannot_read_without_init(self):
        entry = AddressResult(0x48)
        entry.advance(DeviceStatus.CANDIDATE)
        with self.assertRaises(ValueError):
            entry.advance(DeviceStatus.READ_OK)

    def test_unprobed_cannot_initialize(self):
        with self.assertRaises(ValueError):
            AddressResult(0x10).advance(DeviceStatus.INITIALIZED)


class TestRunScan(unittest.TestCase):

    def params(self, **overrides):
        vals = dict(BUS=1, BACKEND="smbus", ADDR_FIRST=0x48, ADDR_LAST=0x4B,
                    VERIFY_ID=False, RESET_SETTLE_DELAY_S=SETTLE, CONVERSION_DELAY_S=CONVERT)
        vals.update(overrides)
        return SimpleNamespace(**vals)

    def test_bus_closed_after_scan(self):
        bus = BusMock({0x49: ChipMock()})
        opened = []

        def opener(bus_id, backend):
            opened.append((bus_id, backend))
            return bus

        result = run_scan(self.params(), sleep=FakeSleep(), opener=opener)
        self.assertEqual(opened, [(1, "smbus")])
        self.assertTrue(bus.closed)
        self.assertEqual(result.status(0x49), DeviceStatus.READ_OK)
        self.assertEqual(result.bus, 1)

    def test_bus_closed_on_error(self):
        bus = BusMock({0x48: ChipMock()})

        def broken(data):
            raise RuntimeError("bug")

        bus.write_bytes = broken
        with self.assertRaises(RuntimeError):
            run_scan(self.params(), sleep=FakeSleep(), opener=lambda b, k: bus)
        self.assertTrue(bus.closed)

    def test_open_failure_is_fatal(self):
        sleep = FakeSleep()

        def opener(bus_id, backend):
            raise OpenError("/dev/i2c-9", "No such file or directory")

        with self.assertRaises(OpenError):
            run_scan(self.params(BUS=9), sleep=sleep, opener=opener)
        self.assertEqual(sleep.delays, [])


if __name__ == "__main__":
    unittest.main()
