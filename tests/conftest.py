from __future__ import annotations

import pytest

from envsense.bme280.calibration import CalibrationCoefficients

from fakes import DATASHEET_COEFFS, FakeTransportFactory


@pytest.fixture
def datasheet_calib() -> CalibrationCoefficients:
    return CalibrationCoefficients(**DATASHEET_COEFFS)


@pytest.fixture
def fake_factory() -> FakeTransportFactory:
    return FakeTransportFactory()
