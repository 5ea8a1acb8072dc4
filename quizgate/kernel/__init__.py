"""Kernel - persistence models."""
