"""Skill installer, autostart registration and REST helpers for engram persistent memory."""

__version__ = "0.1.0"