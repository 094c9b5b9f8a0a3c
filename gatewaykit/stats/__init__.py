"""Counters, sample windows, health status and per-method call tracking."""