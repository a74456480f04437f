"""
Domain layer package.

Pure models and rules with no I/O:
- Configuration records (config/)
- Error taxonomy
- Connection slot declarations
- File-backed database reconciliation
"""
