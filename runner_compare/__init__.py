"""Batch-run Maven test suites under several surefire variants and compare the results."""
