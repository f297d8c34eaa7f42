from .adt_device import ADT74x0, decode_temperature
from .scanner import BusScanner, DeviceStatus, ScanResult, run_scan

__version__ = "0.1.0"
