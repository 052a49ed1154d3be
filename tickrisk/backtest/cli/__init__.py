"""Backtest command line interface."""
