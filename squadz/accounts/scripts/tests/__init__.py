"""Tests for :mod:`squadz.accounts.scripts`."""
