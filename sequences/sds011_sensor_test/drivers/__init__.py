"""Hardware drivers for the SDS011 sensor test sequence."""
