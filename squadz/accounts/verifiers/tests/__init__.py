"""Tests for :mod:`squadz.accounts.verifiers`."""
