# CUI // SP-CTI
"""Generators for the files the pipeline runs around: Jenkinsfile, Dockerfile."""
