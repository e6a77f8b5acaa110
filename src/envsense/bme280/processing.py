from __future__ import annotations

import csv
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, TextIO

import pandas as pd

from .calibration import CalibrationCoefficients, calibration_metadata
from .compensation import RawSample, Reading, compensate_arrays

RAW_COLUMNS = ["adc_t", "adc_p", "adc_h"]
READING_COLUMNS = ["temperature_c", "temperature_f", "pressure_hpa", "humidity_rh"]


@dataclass
class SampleRecord:
    """One logged sample: raw codes plus the compensated reading."""

    ts_ms: float
    adc_t: int
    adc_p: int
    adc_h: int
    temperature_c: float
    temperature_f: float
    pressure_hpa: float
    humidity_rh: float

    @staticmethod
    def build(ts_ms: float, raw: RawSample, reading: Reading) -> "SampleRecord":
        return SampleRecord(
            ts_ms=ts_ms,
            adc_t=raw.adc_t,
            adc_p=raw.adc_p,
            adc_h=raw.adc_h,
            temperature_c=reading.temperature_c,
            temperature_f=reading.temperature_f,
            pressure_hpa=reading.pressure_hpa,
            humidity_rh=reading.humidity_rh,
        )


class CsvLogger:
    """
    Lazily creates a CSV writer when the first record arrives. Keeping writer
    creation lazy avoids touching the filesystem during dry runs or tests.
    """

    def __init__(self, path: Path):
        self.path = path
        self._handle: Optional[csv.DictWriter[str]] = None
        self._file_handle: Optional[TextIO] = None
        self._pending_metadata: List[str] = []

    def append(self, sample: SampleRecord) -> None:
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = self.path.open("w", newline="", encoding="utf-8")
            for line in self._pending_metadata:
                self._file_handle.write(line + "\n")
            self._pending_metadata.clear()
            self._handle = csv.DictWriter(self._file_handle, fieldnames=["ts_ms", *RAW_COLUMNS, *READING_COLUMNS])
            self._handle.writeheader()
        assert self._handle is not None
        self._handle.writerow(asdict(sample))
        if self._file_handle is not None:
            self._file_handle.flush()

    def set_metadata(self, metadata: Dict[str, str]) -> None:
        if not metadata:
            return
        line = "# " + " ".join(f"{key}={value}" for key, value in metadata.items())
        if self._handle is None:
            self._pending_metadata.append(line)
            return
        if self._file_handle is None:
            return
        self._file_handle.write(line + "\n")
        self._file_handle.flush()

    def set_calibration(self, calib: CalibrationCoefficients) -> None:
        self.set_metadata(calibration_metadata(calib))

    def close(self) -> None:
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None
            self._handle = None


def load_raw_log(path: str | Path) -> pd.DataFrame:
    """Load a CSV holding at least the `adc_t`, `adc_p` and `adc_h` columns."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    df = pd.read_csv(path, comment="#")
    missing = set(RAW_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")
    if df[RAW_COLUMNS].isna().any().any():
        raise ValueError("Raw ADC columns must not contain empty values")
    return df


def replay_raw_log(df: pd.DataFrame, calib: CalibrationCoefficients) -> pd.DataFrame:
    """Recompute the reading columns of *df* from its raw codes."""

    results = compensate_arrays(
        df["adc_t"].to_numpy(dtype=float),
        df["adc_p"].to_numpy(dtype=float),
        df["adc_h"].to_numpy(dtype=float),
        calib,
    )
    out = df.drop(columns=[col for col in READING_COLUMNS if col in df.columns]).copy()
    for column in READING_COLUMNS:
        out[column] = results[column]
    return out
