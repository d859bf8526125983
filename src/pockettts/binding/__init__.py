"""Owned wrappers around the native model, voice state and stream handles."""
