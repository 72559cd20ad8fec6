"""Neuro-Bridge: expose host GPU information to a chroot/container over a Unix socket."""

__version__ = "0.1.0"
