"""Process wiring for the telemetry service."""
