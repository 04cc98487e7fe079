"""
SDS011 Sensor Test Sequence Module (SDK 2.0)

Automated test sequence for the Nova Fitness SDS011 particulate
matter sensor connected over UART.

This module uses the SDK 2.0 SequenceBase pattern with:
- setup(): Hardware initialization
- run(): Step-by-step execution with emit_* helpers
- teardown(): Sensor sleep and resource cleanup
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from station_service_sdk import (
    SequenceBase,
    RunResult,
    ExecutionContext,
    SetupError,
)

logger = logging.getLogger(__name__)

# Lazy import for driver - allows metadata extraction without pyserial
SDS011Driver = None


def _get_driver_class():
    """Load driver class at runtime."""
    global SDS011Driver
    if SDS011Driver is None:
        from .drivers.sds011 import SDS011Driver as _Driver
        SDS011Driver = _Driver
    return SDS011Driver


class SDS011SensorTestSequence(SequenceBase):
    """
    SDS011 Sensor Test Sequence (SDK 2.0).

    Reads the firmware version, applies the reporting mode and working
    period, averages a number of PM2.5/PM10 samples against limits and
    puts the sensor to sleep afterwards.

    Attributes:
        name: Sequence identifier
        version: Semantic version
        description: Human-readable description
    """

    # Class-level metadata (required by SequenceBase)
    name = "sds011_sensor_test"
    version = "1.0.0"
    description = "SDS011 미세먼지 센서 테스트 시퀀스 (PM2.5, PM10)"

    HARDWARE_ID = "sds011"

    def __init__(
        self,
        context: ExecutionContext,
        hardware_config: Optional[Dict[str, Dict[str, Any]]] = None,
        parameters: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> None:
        """
        Initialize sequence.

        Args:
            context: Execution context from Station Service
            hardware_config: Hardware configuration dictionary
            parameters: Test parameters dictionary
            **kwargs: Additional arguments for SequenceBase
        """
        super().__init__(
            context=context,
            hardware_config=hardware_config,
            parameters=parameters,
            **kwargs,
        )

        # Sensor driver instance (initialized in setup)
        self.sensor: Optional[Any] = None

        # Connection parameters
        self.port: str = self.get_parameter("port", "/dev/ttyUSB0")
        self.baudrate: int = self.get_parameter("baudrate", 9600)
        self.sensor_id: Optional[str] = self.get_parameter("sensor_id", None)
        self.timeout: float = self.get_parameter("timeout", 5.0)

        # Sensor configuration applied in the configure step
        self.reporting_mode: str = self.get_parameter("reporting_mode", "query")
        self.working_period: int = self.get_parameter("working_period", 0)

        # Sampling and limits (ug/m3)
        self.sample_count: int = self.get_parameter("sample_count", 3)
        self.sample_interval: float = self.get_parameter("sample_interval", 1.0)
        self.pm2p5_max: float = self.get_parameter("pm2p5_max", 999.9)
        self.pm10_max: float = self.get_parameter("pm10_max", 999.9)

        self.sleep_after_test: bool = self.get_parameter("sleep_after_test", True)

        # Stop on first failure (default: True for manufacturing tests)
        self.stop_on_failure: bool = self.get_parameter("stop_on_failure", True)

        logger.debug(f"Initialized {self.name} v{self.version}")

    # =========================================================================
    # Lifecycle Methods (Required by SequenceBase)
    # =========================================================================

    async def setup(self) -> None:
        """
        Connect to the sensor.

        Raises:
            SetupError: If the sensor does not answer
        """
        self.emit_log("info", "하드웨어 초기화 시작...")

        # Simulation mode uses the driver supplied by the station
        if self.context.dry_run:
            self.emit_log("info", "시뮬레이션 모드 - 실제 하드웨어 연결 건너뜀")
            self.sensor = self.context.hardware.get(self.HARDWARE_ID)
            if self.sensor:
                await self.sensor.connect()
            return

        try:
            hw_config = self.get_hardware_config(self.HARDWARE_ID)
            config = {
                "port": self.port,
                "baudrate": self.baudrate,
                "sensor_id": self.sensor_id,
                "timeout": self.timeout,
                **hw_config,
            }

            self.emit_log("info", f"센서 연결 중: {config['port']} @ {config['baudrate']} bps")

            driver_class = _get_driver_class()
            self.sensor = driver_class(config=config)

            connected = await self.sensor.connect()
            if not connected:
                raise SetupError("센서 연결 실패", details={"error_code": "SENSOR_CONNECTION_FAILED"})

            idn = await self.sensor.identify()
            self.emit_log("info", f"센서 연결 완료: {idn}")

        except SetupError:
            raise
        except Exception as e:
            raise SetupError(f"하드웨어 초기화 실패: {e}", details={"original_error": str(e)})

    async def run(self) -> RunResult:
        """
        Execute the main test sequence.

        Returns:
            RunResult with passed status and measurements
        """
        total_steps = 4
        all_passed = True
        measurements: Dict[str, Any] = {}

        # =====================================================================
        # Step 1: Firmware Version
        # =====================================================================
        self.emit_step_start("firmware_version", 1, total_steps, "펌웨어 버전 조회")
        start_time = time.time()

        try:
            self.check_abort()

            if self.sensor:
                firmware = await self.sensor.get_firmware_version()
                self.emit_log("info", f"펌웨어 버전: {firmware}")
                self.emit_measurement(name="firmware_version", value=firmware, unit="", passed=True)
                measurements["firmware_version"] = firmware

            duration = time.time() - start_time
            self.emit_step_complete("firmware_version", 1, True, duration)

        except Exception as e:
            duration = time.time() - start_time
            self.emit_step_complete("firmware_version", 1, False, duration, error=str(e))
            self.emit_error("FIRMWARE_ERROR", str(e))
            all_passed = False
            if self.stop_on_failure:
                return {"passed": False, "measurements": measurements, "data": {"stopped_at": "firmware_version"}}

        # =====================================================================
        # Step 2: Configure (wake, reporting mode, working period)
        # =====================================================================
        self.emit_step_start("configure", 2, total_steps, "센서 설정")
        start_time = time.time()

        try:
            self.check_abort()

            if self.sensor:
                await self.sensor.set_sleep(False)
                await self.sensor.set_reporting_mode(self.reporting_mode)
                await self.sensor.set_working_period(self.working_period)

                mode = await self.sensor.get_reporting_mode()
                period = await self.sensor.get_working_period()
                self.emit_log("info", f"설정 완료 - 보고 모드: {mode}, 작동 주기: {period}분")

                measurements["reporting_mode"] = mode
                measurements["working_period"] = period

            duration = time.time() - start_time
            self.emit_step_complete("configure", 2, True, duration)

        except Exception as e:
            duration = time.time() - start_time
            self.emit_step_complete("configure", 2, False, duration, error=str(e))
            self.emit_error("CONFIGURE_ERROR", str(e))
            all_passed = False
            if self.stop_on_failure:
                return {"passed": False, "measurements": measurements, "data": {"stopped_at": "configure"}}

        # =====================================================================
        # Step 3: Measure PM2.5 / PM10
        # =====================================================================
        self.emit_step_start("measure", 3, total_steps, f"미세먼지 측정 ({self.sample_count}회)")
        start_time = time.time()

        try:
            self.check_abort()
            step_passed = True

            if self.sensor:
                samples = await self._collect_samples()
                pm2p5 = round(sum(s["pm2p5"] for s in samples) / len(samples), 1)
                pm10 = round(sum(s["pm10"] for s in samples) / len(samples), 1)

                pm2p5_passed = 0.0 <= pm2p5 <= self.pm2p5_max
                pm10_passed = 0.0 <= pm10 <= self.pm10_max
                step_passed = pm2p5_passed and pm10_passed

                self.emit_measurement(
                    name="pm2p5",
                    value=pm2p5,
                    unit="ug/m3",
                    passed=pm2p5_passed,
                    min_value=0.0,
                    max_value=self.pm2p5_max,
                )
                self.emit_measurement(
                    name="pm10",
                    value=pm10,
                    unit="ug/m3",
                    passed=pm10_passed,
                    min_value=0.0,
                    max_value=self.pm10_max,
                )

                measurements["pm2p5"] = pm2p5
                measurements["pm10"] = pm10
                measurements["sample_count"] = len(samples)

                if not step_passed:
                    all_passed = False
                    self.emit_log("warning", f"측정값 범위 초과 - PM2.5: {pm2p5}, PM10: {pm10}")

            duration = time.time() - start_time
            self.emit_step_complete(
                "measure",
                3,
                step_passed,
                duration,
                measurements={"pm2p5": measurements.get("pm2p5"), "pm10": measurements.get("pm10")}
                if self.sensor else None,
            )

            if not step_passed and self.stop_on_failure:
                return {"passed": False, "measurements": measurements, "data": {"stopped_at": "measure"}}

        except Exception as e:
            duration = time.time() - start_time
            self.emit_step_complete("measure", 3, False, duration, error=str(e))
            self.emit_error("MEASURE_ERROR", str(e))
            all_passed = False
            if self.stop_on_failure:
                return {"passed": False, "measurements": measurements, "data": {"stopped_at": "measure"}}

        # =====================================================================
        # Step 4: Finalize
        # =====================================================================
        self.emit_step_start("finalize", 4, total_steps, "결과 정리")
        start_time = time.time()

        self.emit_log("info", f"테스트 완료 - 전체 결과: {'PASS' if all_passed else 'FAIL'}")
        self.emit_step_complete("finalize", 4, True, time.time() - start_time)

        return {
            "passed": all_passed,
            "measurements": measurements,
            "data": {
                "reporting_mode": self.reporting_mode,
                "working_period": self.working_period,
                "sample_count": self.sample_count,
            },
        }

    async def teardown(self) -> None:
        """
        Put the sensor to sleep and disconnect.

        Always called, even if setup or run failed.
        """
        self.emit_log("info", "리소스 정리 중...")

        try:
            if self.sensor and await self.sensor.is_connected():
                if self.sleep_after_test:
                    await self.sensor.set_sleep(True)
                    self.emit_log("info", "센서 절전 모드 전환 완료")
                await self.sensor.disconnect()
                self.emit_log("info", "센서 연결 해제 완료")

        except Exception as e:
            self.emit_log("warning", f"정리 중 오류: {e}")
            if self.sensor:
                await self.sensor.disconnect()

        self.sensor = None
        self.emit_log("info", "리소스 정리 완료")

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _collect_samples(self) -> List[Dict[str, float]]:
        """Query the sensor sample_count times, sample_interval apart."""
        samples = []
        for i in range(max(1, self.sample_count)):
            if i > 0:
                await asyncio.sleep(self.sample_interval)
            self.check_abort()

            sample = await self.sensor.query()
            self.emit_log("debug", f"샘플 {i + 1}: PM2.5={sample['pm2p5']}, PM10={sample['pm10']}")
            samples.append(sample)
        return samples
