"""Refresh package - phase table, session state, sequencer and coordination."""
