"""
Command-line interface for PhotoTran.

Runs one sensor transduction from a configuration file and either an
irradiance archive or a generated uniform field.
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from photo_tran import __version__

DEFAULT_BIN_WIDTH_NM = 10.0


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def load_irradiance(path: str):
    """Load an optical image from an .npz archive.

    The archive holds ``photons`` [row, col, wave] (or ``energy`` in
    W/(m²·nm)), ``wavelengths_nm``, ``sample_spacing_m`` and optionally
    ``bin_width_nm``.
    """
    from photo_tran.core.fields import SpectralField
    from photo_tran.core.spectral import energy_to_photons

    with np.load(path) as data:
        missing = {"wavelengths_nm", "sample_spacing_m"} - set(data.files)
        if missing:
            raise ValueError(f"Irradiance file {path} lacks {', '.join(sorted(missing))}")
        if "photons" in data.files:
            photons = data["photons"]
        elif "energy" in data.files:
            photons = energy_to_photons(data["energy"], data["wavelengths_nm"])
        else:
            raise ValueError(f"Irradiance file {path} has neither photons nor energy")
        bin_width = float(data["bin_width_nm"]) if "bin_width_nm" in data.files else None
        return SpectralField(
            photons=photons,
            wavelengths_nm=data["wavelengths_nm"],
            sample_spacing_m=data["sample_spacing_m"],
            bin_width_nm=bin_width,
            name=Path(path).stem,
        )


def build_config(args: argparse.Namespace) -> dict:
    """Configuration dictionary from the config file and CLI overrides."""
    import yaml

    from photo_tran.config.manager import ConfigurationManager

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {args.config}")
        with open(config_path) as f:
            # YAML is a superset of JSON
            config = yaml.safe_load(f) or {}
    else:
        config = ConfigurationManager.create_example_config()

    if args.samples_per_pixel is not None:
        config.setdefault("sampling", {})["samples_per_pixel"] = args.samples_per_pixel
    if args.integration_time is not None:
        times = args.integration_time
        config.setdefault("exposure", {})["integration_time_s"] = times[0] if len(times) == 1 else times
    if args.noise is not None:
        config.setdefault("noise", {})["mode"] = args.noise
    if args.strategy is not None:
        config.setdefault("system", {})["density_strategy"] = args.strategy

    return config


def run_simulation(args: argparse.Namespace) -> int:
    """Run a sensor transduction simulation."""
    from photo_tran import Simulation

    config = build_config(args)
    sim = Simulation(config)

    if args.irradiance:
        optical_image = load_irradiance(args.irradiance)
    else:
        # Uniform field wide enough to cover the sensor
        pixel = sim.sensor.pixel
        spacing = args.field_spacing_um * 1e-6
        if args.field_size is not None:
            size = args.field_size
        else:
            extent = max(pixel.rows * pixel.height_m, pixel.cols * pixel.pitch_m)
            size = int(np.ceil(extent / spacing)) + 2
        bin_width = args.bin_width
        if bin_width is None and len(args.wavelength) == 1:
            bin_width = DEFAULT_BIN_WIDTH_NM
        optical_image = Simulation.uniform_field(
            args.flux,
            args.wavelength,
            shape=(size, size),
            sample_spacing_m=spacing,
            bin_width_nm=bin_width,
        )

    print("Running simulation...")
    result = sim.run(optical_image)

    if args.output:
        output_format = args.format or sim.config.output.format
        output_path = sim.save_result(result, args.output, format=output_format)
        print(f"Results saved to: {output_path}")
    else:
        volts = result.volts
        print("\nSimulation Results:")
        print(f"  Sensor: {sim.sensor.name}")
        print(f"  Signal shape: {volts.shape}")
        print(f"  Exposures [s]: {', '.join(f'{t:g}' for t in result.signal.exposure_times_s)}")
        print(f"  Noise mode: {result.signal.noise_mode.value}")
        print(f"  Mean signal: {volts.mean():.6g} V")
        print(f"  Min / max: {volts.min():.6g} / {volts.max():.6g} V")

    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PhotoTran: optical-to-electrical sensor transduction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Sensor from a config file, irradiance from an archive
    photo-tran --config sensor.yaml --irradiance scene.npz --output signal.json

    # Uniform 550 nm field on the built-in example sensor
    photo-tran --flux 1e18 --wavelength 550 --bin-width 10

    # Two exposures with photon noise, CSV output
    photo-tran -c sensor.json --integration-time 0.01 0.02 --noise photon_only -o out.csv -f csv
        """,
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"PhotoTran {__version__}",
    )

    # Inputs
    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to JSON or YAML sensor configuration",
    )
    parser.add_argument(
        "-i", "--irradiance",
        type=str,
        help="Path to .npz optical image (photons, wavelengths_nm, sample_spacing_m)",
    )

    # Uniform field options
    parser.add_argument(
        "--flux",
        type=float,
        default=1.0e18,
        help="Uniform field photon flux [photons/(m^2 nm s)]",
    )
    parser.add_argument(
        "--wavelength",
        type=float,
        nargs="+",
        default=[550.0],
        help="Uniform field wavelengths [nm]",
    )
    parser.add_argument(
        "--bin-width",
        type=float,
        default=None,
        help="Wavelength bin width [nm] (default 10 for a single wavelength)",
    )
    parser.add_argument(
        "--field-size",
        type=int,
        default=None,
        help="Uniform field samples per side (default: covers the sensor)",
    )
    parser.add_argument(
        "--field-spacing-um",
        type=float,
        default=0.5,
        help="Uniform field sample spacing [um]",
    )

    # Overrides
    parser.add_argument(
        "-n", "--samples-per-pixel",
        type=int,
        help="Sub-pixel samples per axis (odd)",
    )
    parser.add_argument(
        "-t", "--integration-time",
        type=float,
        nargs="+",
        help="Integration time(s) [s]",
    )
    parser.add_argument(
        "--noise",
        type=str,
        choices=["none", "photon_only", "photon_and_electronic"],
        help="Noise mode",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=["auto", "bulk", "accumulate"],
        help="Current density strategy",
    )

    # Output options
    parser.add_argument(
        "-o", "--output",
        type=str,
        help="Output file path",
    )
    parser.add_argument(
        "-f", "--format",
        type=str,
        choices=["json", "csv", "netcdf"],
        help="Output format",
    )
    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        return run_simulation(args)
    except Exception as e:
        logging.exception(f"Simulation failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
