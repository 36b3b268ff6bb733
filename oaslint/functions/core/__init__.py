"""Core functions shared by every ruleset."""
