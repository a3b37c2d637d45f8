"""Orchestration core of platformctl: registry, starters, health checking and the manager."""
