"""
Interface layer - operator command line.
"""
