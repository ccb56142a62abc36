"""Conan package registry backed by GitHub releases."""
