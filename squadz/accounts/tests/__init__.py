"""Tests for :mod:`squadz.accounts`."""
