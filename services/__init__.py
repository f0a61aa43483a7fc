"""
Services for the TOF PID pipeline.

Calibration access, expected TOF response, event-time estimation and
PID table production.
"""
