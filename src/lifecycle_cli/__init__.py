"""Operator command line for the domain lifecycle engine."""
