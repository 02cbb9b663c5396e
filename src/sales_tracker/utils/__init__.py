"""Shared helpers for the sales tracker."""
