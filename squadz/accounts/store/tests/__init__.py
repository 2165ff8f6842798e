"""Tests for :mod:`squadz.accounts.store`."""
