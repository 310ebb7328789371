"""Command line interface for rgreaper."""
