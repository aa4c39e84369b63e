"""Workspace, extrapolation table and the adaptive drivers."""
