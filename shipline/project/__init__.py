# CUI // SP-CTI
"""shipline.yaml loading and validation."""
