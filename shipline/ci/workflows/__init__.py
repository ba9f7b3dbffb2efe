# CUI // SP-CTI
"""Release and rollback workflows composed from shipline.ci.modules."""
