"""
Processing scripts for the DeWAFF nodes
"""
