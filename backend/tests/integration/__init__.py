"""Integration tests - HTTP routes over a fake backend"""
