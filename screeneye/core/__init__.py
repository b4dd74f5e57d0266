"""Attention state engine and face signal processing."""
