# CUI // SP-CTI
"""Thin wrappers over Maven, Docker, SSH and git plus run state and history."""
