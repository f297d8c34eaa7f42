import csv
import os
from datetime import datetime

from .bus_transport import bus_name
from .scanner import DeviceStatus

CSV_HEADER = ["Timestamp", "Bus", "Address", "Status", "Temperature (C)", "Error code"]


def header_line(bus):
    return f"# Scanning {bus_name(bus)} for ADT74x0..."


def format_entry(entry):
    """One report line, or None for addresses that were never probed."""
    if entry.status is DeviceStatus.READ_OK:
        return f"0x{entry.address:02x} {entry.temperature:.5f}C"
    if entry.error is not None:
        name = type(entry.error).__name__
        return f"# 0x{entry.address:02x} error {entry.error.code} ({name}: {entry.error.reason})"
    return None


def report_lines(result):
    lines = []
    for entry in result:
        line = format_entry(entry)
        if line is not None:
            lines.append(line)
    return lines


def print_report(result, out=print):
    for line in report_lines(result):
        out(line)


class ScanLogger:
    """Appends every probed address of a scan to a CSV file."""

    def __init__(self, file_name):
        self.file_name = file_name

    def _needs_header(self):
        return not os.path.exists(self.file_name) or os.stat(self.file_name).st_size == 0

    def log_scan(self, result, timestamp=None):
        if timestamp is None:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        write_header = self._needs_header()
        with open(self.file_name, 'a', encoding='UTF8', newline='') as f:
            writer = csv.writer(f)
            if write_header:
                writer.writerow(CSV_HEADER)
            for entry in result:
                writer.writerow([
                    timestamp,
                    bus_name(result.bus) if result.bus is not None else "",
                    f"0x{entry.address:02x}",
                    entry.status.value,
                    "" if entry.temperature is None else f"{entry.temperature:.5f}",
                    "" if entry.error is None else entry.error.code,
                ])
