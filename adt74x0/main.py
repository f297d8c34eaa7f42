"""Read the temperature from ADT7410 and ADT7420 I2C sensors.

usage: adt74x0 [/dev/i2c-1]

Every candidate address is reset and configured first, then the bus waits
once for the conversions, then each chip that answered is read. Exit status
is 0 whenever the scan ran, even if no sensor was found; 1 only when the bus
couldn't be opened. Bad arguments (e.g. an address range outside 0-127) are
rejected by argparse before the bus is touched.
"""
import argparse
import logging
import sys

from .SCAN_PARAMS_class import SCAN_PARAMS, conversion_delay, to_address
from .bus_transport import BACKENDS
from .errors import OpenError
from .reporter import ScanLogger, header_line, print_report
from .scanner import FULL_RANGE, check_range, run_scan

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description='Scan an I2C bus for ADT74x0 temperature sensors')
    parser.add_argument('bus', nargs='?', default=None,
                        help='I2C bus number or device path (default: 1, i.e. /dev/i2c-1)')
    parser.add_argument('--backend', choices=sorted(BACKENDS), default=None,
                        help='smbus: kernel SMBus calls, rdwr: raw combined transactions')
    parser.add_argument('--full-range', action='store_true',
                        help='probe all 128 addresses instead of 0x48-0x4b')
    parser.add_argument('--first', type=to_address, default=None, help='first candidate address')
    parser.add_argument('--last', type=to_address, default=None, help='last candidate address')
    parser.add_argument('--verify-id', dest='verify_id', action='store_true', default=None,
                        help='check the ID register (needs reliable register reads)')
    parser.add_argument('--no-verify-id', dest='verify_id', action='store_false',
                        help='skip the ID check even if the config enables it')
    parser.add_argument('--conversion-delay', type=float, default=None,
                        help='seconds to wait between init and read passes')
    parser.add_argument('--csv', default=None, help='append results to this CSV file')
    parser.add_argument('--config', default=None, help='JSON parameter file')
    parser.add_argument('-v', '--verbose', action='count', default=0)
    return parser


def apply_args(params, args):
    if args.bus is not None:
        params.BUS = args.bus
    if args.backend is not None:
        params.BACKEND = args.backend
    if args.full_range:
        params.ADDR_FIRST, params.ADDR_LAST = FULL_RANGE
    if args.first is not None:
        params.ADDR_FIRST = args.first
    if args.last is not None:
        params.ADDR_LAST = args.last
    if args.verify_id is not None:
        params.VERIFY_ID = args.verify_id
    if args.conversion_delay is not None:
        params.CONVERSION_DELAY_S = conversion_delay(args.conversion_delay)
    if args.csv is not None:
        params.CSV_FILE = args.csv
    return params


def setup_logging(level_name, verbose):
    level = getattr(logging, str(level_name).upper(), logging.WARNING)
    if verbose == 1:
        level = min(level, logging.INFO)
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    params = apply_args(SCAN_PARAMS(args.config), args)
    try:
        check_range(params.ADDR_FIRST, params.ADDR_LAST)
    except ValueError as e:
        parser.error(str(e))
    if params.BACKEND not in BACKENDS:
        parser.error(f"unknown backend {params.BACKEND!r}")
    setup_logging(params.LOG_LEVEL, args.verbose)

    print(header_line(params.BUS))
    try:
        result = run_scan(params)
    except OpenError as e:
        print(f"Unable to open {e.bus_id}")
        return 1

    print_report(result)
    if params.CSV_FILE:
        ScanLogger(params.CSV_FILE).log_scan(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
