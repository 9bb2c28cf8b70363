"""Shared utilities for lancenter."""
