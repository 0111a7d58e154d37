"""Parsers for ATS job feeds and location strings"""
