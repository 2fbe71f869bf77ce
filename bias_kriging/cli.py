#!/usr/bin/env python
"""
Script to apply a Kriging bias correction to a forecast file.

The yaml configuration file has the form:

.. code-block:: yaml

    input: /path/to/forecast.nc
    output: /path/to/corrected.nc
    parameters: /path/to/biases.csv
    variable: air_temperature_2m
    kriging:
      type: cressman
      efoldDist: 30000
      radius: 30000
      operator: add
    logging:
      level: info
"""

import argparse
import logging
import sys
import yaml

from bias_kriging.calibrator import KrigingCalibrator
from bias_kriging.config import KrigingConfig
from bias_kriging.io import load_dataset, load_parameters, save_dataset
from bias_kriging.utils import ConfigurationError, init_logging


parser = argparse.ArgumentParser(
    description="Spreads bias in space by using kriging"
)
parser.add_argument(
    "-config",
    dest="config",
    required=True,
    help="Path to yaml file containing configuration settings",
    type=str,
)


def _parse_args(
    parser: argparse.ArgumentParser,
    argv: list[str] | None = None,
) -> dict:
    args = parser.parse_args(argv)
    with open(args.config, "r") as io:
        config: dict = yaml.safe_load(io)

    return config


def run(config: dict) -> bool:
    """
    Run the calibration defined by a configuration dictionary.

    Returns
    -------
    bool
        True if a correction was applied.
    """
    for key in ("input", "parameters", "variable"):
        if key not in config:
            raise ConfigurationError(f"Missing '{key}' in configuration")

    kriging_config = KrigingConfig.from_dict(config.get("kriging") or {})
    calibrator = KrigingCalibrator(kriging_config)

    logging.info(f"Loading forecast from {config['input']}")
    grid = load_dataset(config["input"])
    logging.info(f"Loading parameters from {config['parameters']}")
    parameters = load_parameters(config["parameters"])

    applied = calibrator.calibrate(grid, parameters, config["variable"])

    output = config.get("output", config["input"])
    logging.info(f"Writing output to {output}")
    save_dataset(grid, output)
    return applied


def main(argv: list[str] | None = None) -> int:  # noqa: D103
    config = _parse_args(parser, argv)
    log_config = config.get("logging") or {}
    init_logging(
        file=log_config.get("file"), level=log_config.get("level", "info")
    )
    try:
        run(config)
    except ConfigurationError as e:
        logging.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
