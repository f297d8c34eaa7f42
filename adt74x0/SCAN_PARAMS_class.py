import json
import logging
import os

from .adt_device import CONVERSION_DELAY, RESET_SETTLE_DELAY
from .scanner import NARROW_RANGE

logger = logging.getLogger(__name__)

CONFIG_ENV = "ADT74X0_CONFIG"
MIN_SETTLE_DELAY_S = 0.0002  # datasheet minimum after a reset
MIN_CONVERSION_DELAY_S = CONVERSION_DELAY

DEFAULTS = {
    "BUS": 1,                                   # /dev/i2c-1 on current Raspberry Pis
    "BACKEND": "smbus",                         # "smbus" (kernel SMBus calls) or "rdwr" (combined transactions)
    "ADDR_FIRST": NARROW_RANGE[0],              # first candidate address
    "ADDR_LAST": NARROW_RANGE[1],               # last candidate address, inclusive
    "VERIFY_ID": False,                         # check IDREG, only on buses where register reads work
    "RESET_SETTLE_DELAY_S": RESET_SETTLE_DELAY, # wait after reset, >= 200us
    "CONVERSION_DELAY_S": CONVERSION_DELAY,     # single wait between init and read passes
    "LOG_LEVEL": "WARNING",
    "CSV_FILE": None,                           # append scan rows here if set
}


def to_address(value):
    # JSON has no hex literals so "0x48" strings are allowed too
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def settle_delay(value):
    return max(MIN_SETTLE_DELAY_S, float(value))


def conversion_delay(value):
    # never shorter than the first 16 bit conversion needs
    return max(MIN_CONVERSION_DELAY_S, float(value))


CONVERTERS = {
    "ADDR_FIRST": to_address,
    "ADDR_LAST": to_address,
    "VERIFY_ID": bool,
    "RESET_SETTLE_DELAY_S": settle_delay,
    "CONVERSION_DELAY_S": conversion_delay,
}


class SCAN_PARAMS:
    def __init__(self, file_name=None):
        if file_name is None:
            file_name = os.environ.get(CONFIG_ENV)
        self.file_name = file_name

        vals = {}
        if file_name:
            try:
                with open(file_name, 'r') as json_in:
                    vals = json.loads(json_in.read())
                if not isinstance(vals, dict):
                    raise ValueError("top level of config must be an object")
            except (OSError, ValueError) as e:
                logger.warning("Issue reading parameters from %s, using defaults: %s", file_name, e)
                vals = {}

        for key, default in DEFAULTS.items():
            value = vals.get(key, default)
            convert = CONVERTERS.get(key)
            if convert is not None:
                try:
                    value = convert(value)
                except (TypeError, ValueError) as e:
                    logger.warning("Bad value %r for %s, using default %r: %s", value, key, default, e)
                    value = default
            setattr(self, key, value)

    def as_dict(self):
        return {key: getattr(self, key) for key in DEFAULTS}

    def update_parameter(self, file_name, variable, value):
        # rewrite a single key in the json file, creating the file if needed
        if variable not in DEFAULTS:
            raise KeyError(variable)
        parsed = {}
        if os.path.exists(file_name):
            with open(file_name, 'r') as json_in:
                parsed = json.loads(json_in.read())
        parsed[variable] = value
        with open(file_name, 'w') as json_out:
            json_out.write(json.dumps(parsed, indent=2))
        setattr(self, variable, value)
        logger.info("Updated %s=%r in %s", variable, value, file_name)
