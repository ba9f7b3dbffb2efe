# CUI // SP-CTI
"""shipline CI/CD pipeline: external tool modules and release workflows."""
