"""Job domain - job state machine and crew"""
