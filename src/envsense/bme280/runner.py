from __future__ import annotations

import logging
import threading
import time
from dataclasses import fields
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import typer

from .calibration import CalibrationCoefficients, load_calibration, save_calibration
from .compensation import Reading, compensate
from .config import DriverConfig, load_config
from .errors import Bme280Error, BusReadError, BusWriteError, CompensationError
from .processing import CsvLogger, SampleRecord, load_raw_log, replay_raw_log
from .sensor import Bme280, State
from .transport import SmbusTransport

logger = logging.getLogger(__name__)


def format_reading(reading: Reading) -> str:
    return "\n".join(
        [
            f"Temperature in Celsius : {reading.temperature_c:.2f} C",
            f"Temperature in Fahrenheit : {reading.temperature_f:.2f} F",
            f"Pressure : {reading.pressure_hpa:.2f} hPa ",
            f"Relative Humidity : {reading.humidity_rh:.2f} %",
        ]
    )


class Bme280Monitor:
    """Periodic sampling loop around a configured ``Bme280``."""

    def __init__(
        self,
        sensor: Bme280,
        config: DriverConfig,
        csv_logger: Optional[CsvLogger] = None,
        on_reading: Optional[Callable[[Reading], None]] = None,
    ) -> None:
        if sensor.state is not State.CONFIGURED or sensor.calibration is None:
            raise ValueError("Monitor requires a configured sensor")
        self.sensor = sensor
        self.config = config
        self.csv_logger = csv_logger
        self.on_reading = on_reading
        self._stop_event = threading.Event()
        self._processed = 0
        self._errors = 0
        if self.csv_logger is not None:
            self.csv_logger.set_calibration(sensor.calibration)

    def stop(self) -> None:
        self._stop_event.set()

    def stats(self) -> dict[str, int]:
        return {"samples": self._processed, "errors": self._errors}

    def run(self, count: Optional[int] = None) -> dict[str, int]:
        interval = max(float(self.config.interval_sec), 0.0)
        log_interval = max(float(self.config.host.stats_log_interval), 5.0)
        next_log = time.monotonic() + log_interval
        t0 = time.monotonic()
        try:
            while not self._stop_event.is_set():
                if count is not None and self._processed + self._errors >= count:
                    break
                self.step((time.monotonic() - t0) * 1000.0)
                if time.monotonic() >= next_log:
                    self._emit_stats()
                    next_log = time.monotonic() + log_interval
                if count is not None and self._processed + self._errors >= count:
                    break
                self._stop_event.wait(interval)
        except KeyboardInterrupt:
            logger.info("Stopping monitor (Ctrl+C)")
        finally:
            if self.csv_logger is not None:
                self.csv_logger.close()
            logger.info("Final stats: samples=%d errors=%d", self._processed, self._errors)
        return self.stats()

    def step(self, ts_ms: float) -> Optional[Reading]:
        calibration = self.sensor.calibration
        assert calibration is not None
        try:
            raw = self.sensor.read_raw()
            reading = compensate(raw, calibration)
        except (BusReadError, BusWriteError, CompensationError) as exc:
            self._errors += 1
            logger.warning("Sample failed: %s", exc)
            return None
        self._processed += 1
        if self.csv_logger is not None:
            self.csv_logger.append(SampleRecord.build(ts_ms, raw, reading))
        if self.on_reading is not None:
            self.on_reading(reading)
        return reading

    def _emit_stats(self) -> None:
        logger.info("samples=%d errors=%d", self._processed, self._errors)


Stage = Tuple[str, Callable[[], object]]


def _run_stages(sensor: Bme280, stages: Sequence[Stage]) -> None:
    for name, step in stages:
        try:
            step()
        except Bme280Error as exc:
            sensor.close()
            logger.debug("%s failed", name, exc_info=True)
            typer.echo(f"{name} failed: {exc.description}", err=True)
            raise typer.Exit(code=1) from exc


def _bring_up(cfg: DriverConfig, *, configure: bool = True) -> Bme280:
    sensor = Bme280(transport_factory=SmbusTransport, policy=cfg.policy)
    stages: List[Stage] = [
        ("Init", lambda: sensor.init(cfg.bus_path, cfg.address)),
        ("Read calibration", sensor.read_calibration),
    ]
    if configure:
        stages.append(("Configure", sensor.configure))
    _run_stages(sensor, stages)
    return sensor


def _resolve_config(
    config_path: Optional[Path],
    bus: Optional[str],
    address: Optional[str],
    override: Optional[List[str]],
) -> DriverConfig:
    overrides = list(override or [])
    if bus is not None:
        overrides.append(f"bus_path={bus}")
    if address is not None:
        overrides.append(f"address={address}")
    try:
        return load_config(config_path, overrides or None)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


_BUS_OPTION = typer.Option(None, "--bus", "-b", help="I2C device node (default /dev/i2c-1).")
_ADDRESS_OPTION = typer.Option(None, "--address", "-a", help="I2C address, e.g. 0x76 or 0x77.")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to driver config JSON.")
_SET_OPTION = typer.Option(None, "--set", help="Override config keys, e.g. --set policy.config=0xA0")


app = typer.Typer(add_completion=False, help="BME280 temperature / pressure / humidity utilities.")
calib_app = typer.Typer(help="Calibration coefficient utilities.")
app.add_typer(calib_app, name="calib")


@app.command()
def read(
    bus: Optional[str] = _BUS_OPTION,
    address: Optional[str] = _ADDRESS_OPTION,
    config_path: Optional[Path] = _CONFIG_OPTION,
    override: Optional[List[str]] = _SET_OPTION,
) -> None:
    """Take one reading and print it."""

    cfg = _resolve_config(config_path, bus, address, override)
    sensor = _bring_up(cfg)
    try:
        _run_stages(sensor, [("Read data", lambda: typer.echo(format_reading(sensor.sample())))])
    finally:
        sensor.close()


@app.command()
def monitor(
    bus: Optional[str] = _BUS_OPTION,
    address: Optional[str] = _ADDRESS_OPTION,
    config_path: Optional[Path] = _CONFIG_OPTION,
    override: Optional[List[str]] = _SET_OPTION,
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Seconds between samples."),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Stop after N samples (default: run until Ctrl+C)."),
    out: Optional[Path] = typer.Option(None, "--out", help="CSV log of raw codes and readings."),
) -> None:
    """Sample periodically, optionally logging to CSV."""

    cfg = _resolve_config(config_path, bus, address, override)
    if interval is not None:
        cfg.interval_sec = interval
    if out is not None:
        cfg.output_csv = out
    sensor = _bring_up(cfg)
    csv_logger = CsvLogger(cfg.output_csv) if cfg.output_csv else None

    def echo(reading: Reading) -> None:
        typer.echo(
            f"{reading.temperature_c:7.2f} C  {reading.pressure_hpa:8.2f} hPa  {reading.humidity_rh:6.2f} %"
        )

    try:
        mon = Bme280Monitor(sensor, cfg, csv_logger=csv_logger, on_reading=echo)
        stats = mon.run(count=count)
    finally:
        sensor.close()
    if stats["errors"]:
        typer.echo(f"{stats['errors']} sample(s) failed", err=True)


@app.command()
def replay(
    input_path: Path = typer.Option(..., "--in", help="CSV with adc_t, adc_p, adc_h columns.", exists=True, readable=True),
    calib_path: Path = typer.Option(..., "--calib", help="Calibration JSON from 'calib dump'.", exists=True, readable=True),
    out: Path = typer.Option(..., "--out", help="Destination CSV."),
) -> None:
    """Recompute readings from a logged raw CSV."""

    try:
        calib = load_calibration(calib_path)
        df = load_raw_log(input_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    try:
        result = replay_raw_log(df, calib)
    except CompensationError as exc:
        typer.echo(f"Replay failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    out.parent.mkdir(parents=True, exist_ok=True)
    result.to_csv(out, index=False)
    typer.echo(f"Wrote {len(result)} samples to {out}")


def _echo_calibration(calib: CalibrationCoefficients) -> None:
    for item in fields(calib):
        typer.echo(f"{item.name}: {getattr(calib, item.name)}")


@calib_app.command("dump")
def calib_dump(
    bus: Optional[str] = _BUS_OPTION,
    address: Optional[str] = _ADDRESS_OPTION,
    config_path: Optional[Path] = _CONFIG_OPTION,
    out: Path = typer.Option(Path("bme280_calib.json"), "--out", help="Output JSON file."),
) -> None:
    """Read the factory calibration and save it as JSON."""

    cfg = _resolve_config(config_path, bus, address, None)
    sensor = _bring_up(cfg, configure=False)
    try:
        calib = sensor.calibration
        assert calib is not None
        save_calibration(out, calib)
    finally:
        sensor.close()
    typer.echo(f"Saved calibration from 0x{cfg.address:02X} to {out}")


@calib_app.command("show")
def calib_show(
    input_path: Path = typer.Option(..., "--in", help="Calibration JSON.", exists=True, readable=True),
) -> None:
    """Print a saved calibration set."""

    try:
        calib = load_calibration(input_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _echo_calibration(calib)
