"""Batch token ingestion.

Turns an externally produced batch file into validated token writes and
applies them to the record store in one atomic commit.
"""
