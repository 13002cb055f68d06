"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every module: JSON logging and
latency measurement.
"""
