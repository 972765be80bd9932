"""Construct a Go workspace src directory from the Debian archive."""
