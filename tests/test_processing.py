from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from envsense.bme280.calibration import CalibrationCoefficients
from envsense.bme280.compensation import RawSample, compensate
from envsense.bme280.processing import CsvLogger, SampleRecord, load_raw_log, replay_raw_log

from fakes import ADC_H, ADC_P, ADC_T


def _record(datasheet_calib: CalibrationCoefficients, ts_ms: float = 0.0) -> SampleRecord:
    raw = RawSample(adc_p=ADC_P, adc_t=ADC_T, adc_h=ADC_H)
    return SampleRecord.build(ts_ms, raw, compensate(raw, datasheet_calib))


def test_csv_logger_is_lazy(tmp_path: Path, datasheet_calib: CalibrationCoefficients) -> None:
    path = tmp_path / "logs" / "out.csv"
    logger = CsvLogger(path)
    logger.set_calibration(datasheet_calib)
    assert not path.exists()
    logger.append(_record(datasheet_calib, 0.0))
    logger.append(_record(datasheet_calib, 1000.0))
    logger.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "# calib_t1=27504 calib_p1=36477 calib_h1=75"
    assert lines[1].startswith("ts_ms,adc_t,adc_p,adc_h,temperature_c")
    assert len(lines) == 4


def test_replay_round_trips_logged_samples(tmp_path: Path, datasheet_calib: CalibrationCoefficients) -> None:
    path = tmp_path / "raw.csv"
    logger = CsvLogger(path)
    logger.set_calibration(datasheet_calib)
    record = _record(datasheet_calib)
    logger.append(record)
    logger.close()

    df = load_raw_log(path)
    result = replay_raw_log(df, datasheet_calib)
    assert list(result.columns[:4]) == ["ts_ms", "adc_t", "adc_p", "adc_h"]
    assert np.isclose(result["temperature_c"].iloc[0], record.temperature_c)
    assert np.isclose(result["pressure_hpa"].iloc[0], record.pressure_hpa)
    assert np.isclose(result["humidity_rh"].iloc[0], record.humidity_rh)


def test_replay_raw_only_columns(tmp_path: Path, datasheet_calib: CalibrationCoefficients) -> None:
    path = tmp_path / "raw.csv"
    pd.DataFrame({"adc_t": [ADC_T, ADC_T], "adc_p": [ADC_P, ADC_P], "adc_h": [0, 0xFFFF]}).to_csv(path, index=False)
    result = replay_raw_log(load_raw_log(path), datasheet_calib)
    assert result["humidity_rh"].tolist() == [0.0, 100.0]
    assert np.allclose(result["pressure_hpa"], 1006.5327, atol=0.1)


def test_load_raw_log_requires_columns(tmp_path: Path) -> None:
    path = tmp_path / "bad.csv"
    pd.DataFrame({"adc_t": [1], "adc_p": [2]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="adc_h"):
        load_raw_log(path)
    with pytest.raises(FileNotFoundError):
        load_raw_log(tmp_path / "missing.csv")
