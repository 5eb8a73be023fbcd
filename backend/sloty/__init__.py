"""Sloty: appointment availability and reservation service."""
