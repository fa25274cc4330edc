"""
Output Formatter for exporting simulation results.

Supports multiple output formats:
- CSV: Long-format table, one row per pixel value
- JSON: Full structured output with metadata
- NetCDF: Scientific data format with metadata
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# NetCDF export is an optional extra
try:
    import xarray as xr
    import netCDF4  # noqa: F401
    NETCDF_AVAILABLE = True
except ImportError:
    NETCDF_AVAILABLE = False


def signal_dims(signal) -> List[str]:
    """Dimension names of a SignalField's volts array."""
    dims = ["row", "col"]
    if signal.has_channel_axis:
        dims.append("channel")
    if signal.n_exposures > 1:
        dims.append("exposure")
    return dims


class OutputFormatter:
    """Formatter for exporting simulation results to various formats.

    Example:
        >>> formatter = OutputFormatter()
        >>> formatter.save(result, "output.json", format="json")
        >>> formatter.save(result, "output.csv", format="csv")
        >>> formatter.save(result, "output.nc", format="netcdf")
    """

    def save(
        self,
        result,  # SimulationResult
        output_path: str,
        format: str = "json",
        **kwargs,
    ) -> str:
        """Save simulation result to file.

        Args:
            result: SimulationResult object
            output_path: Output file path
            format: Output format (csv, json, netcdf)
            **kwargs: Additional format-specific options

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        format = format.lower()

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if format == "json":
            return self._save_json(result, output_path, **kwargs)
        elif format == "csv":
            return self._save_csv(result, output_path, **kwargs)
        elif format == "netcdf" or format == "nc":
            return self._save_netcdf(result, output_path, **kwargs)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _save_json(self, result, output_path: Path, indent: int = 2, **kwargs) -> str:
        signal = result.signal
        data = {
            "metadata": {
                "format_version": "1.0",
                "created": datetime.now().isoformat(),
                "software": "PhotoTran",
                **result.metadata,
            },
            "dimensions": signal_dims(signal),
            "exposure_times_s": list(signal.exposure_times_s),
            "results": {
                "volts": signal.volts.tolist(),
                "mean_volts": signal.mean_volts.tolist(),
            },
            "configuration": result.config.to_dict(),
        }

        with open(output_path, 'w') as f:
            json.dump(data, f, indent=indent)

        logger.info(f"Saved JSON output to {output_path}")
        return str(output_path)

    def _save_csv(self, result, output_path: Path, delimiter: str = ",", **kwargs) -> str:
        """Save result as a long-format table.

        Columns are row, col, then channel and exposure_s when those axes
        exist, then volts and mean_volts.
        """
        signal = result.signal
        dims = signal_dims(signal)
        index = np.indices(signal.volts.shape).reshape(signal.volts.ndim, -1)

        columns = {}
        for axis, name in enumerate(dims):
            if name == "exposure":
                columns["exposure_s"] = np.asarray(signal.exposure_times_s)[index[axis]]
            else:
                columns[name] = index[axis]
        columns["volts"] = signal.volts.ravel()
        columns["mean_volts"] = signal.mean_volts.ravel()

        df = pd.DataFrame(columns)
        df.to_csv(output_path, index=False, sep=delimiter)

        logger.info(f"Saved CSV output to {output_path}")
        return str(output_path)

    def _save_netcdf(self, result, output_path: Path, **kwargs) -> str:
        if not NETCDF_AVAILABLE:
            raise RuntimeError(
                "NetCDF output requires xarray and netCDF4. "
                "Install with: pip install photo-tran[netcdf]"
            )

        signal = result.signal
        dims = signal_dims(signal)
        coords = {
            "row": np.arange(signal.volts.shape[0]),
            "col": np.arange(signal.volts.shape[1]),
        }
        if "channel" in dims:
            names = result.metadata.get("channel_names") or []
            n_channels = signal.volts.shape[2]
            coords["channel"] = names if len(names) == n_channels else np.arange(n_channels)
        if "exposure" in dims:
            coords["exposure"] = (["exposure"], np.asarray(signal.exposure_times_s), {
                "long_name": "Integration time",
                "units": "s",
            })

        ds = xr.Dataset(
            data_vars={
                "volts": (dims, signal.volts, {
                    "long_name": "Sensor signal",
                    "units": "V",
                }),
                "mean_volts": (dims, signal.mean_volts, {
                    "long_name": "Noise-free mean sensor signal",
                    "units": "V",
                }),
            },
            coords=coords,
            attrs={
                "title": "PhotoTran Sensor Transduction Results",
                "source": "PhotoTran optical-to-electrical transduction simulation",
                "history": f"Created {datetime.now().isoformat()}",
                "conventions": "CF-1.8",
                "sensor": str(result.metadata.get("sensor", "")),
                "noise_mode": str(result.metadata.get("noise_mode", "")),
                "samples_per_pixel": int(result.metadata.get("samples_per_pixel", 1)),
                "conversion_gain_v_per_e": float(signal.conversion_gain),
            },
        )

        ds.to_netcdf(output_path)
        logger.info(f"Saved NetCDF output to {output_path}")
        return str(output_path)
